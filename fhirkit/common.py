"""Utility methods"""

import json
import logging
from typing import Any

import rich


def read_text(path: str) -> str:
    """
    Reads data from the given path, in text format
    :param path: filesystem path
    :return: the file contents
    """
    logging.debug("read_text() %s", path)

    with open(path, encoding="utf8") as f:
        return f.read()


def read_json(path: str) -> Any:
    """
    Reads json from a file
    :param path: filesystem path
    :return: the parsed json
    """
    logging.debug("read_json() %s", path)

    with open(path, encoding="utf8") as f:
        return json.load(f)


def print_json(data: Any) -> None:
    """Pretty-prints a json structure to the console"""
    rich.get_console().print_json(data=data)
