"""The command line interface to fhirkit"""

import argparse
import asyncio
import enum
import logging
import sys

import rich.logging

from fhirkit import commands


class Command(enum.Enum):
    """Subcommand strings"""

    METADATA = "metadata"
    RESOLVE = "resolve"
    SEARCH = "search"

    # Why isn't this part of Enum directly...?
    @classmethod
    def values(cls):
        return [e.value for e in cls]


def get_subcommand(argv: list[str]) -> str | None:
    """
    Determines which subcommand was requested by the given command line.

    This inspects the first positional argument.
    If it's a recognized command, we return it (and remove it from argv). Else None.
    """
    for i, arg in enumerate(argv):
        if arg in Command.values():
            return argv.pop(i)  # remove it to make later parsers' jobs easier
        elif not arg.startswith("-"):
            return None


async def main(argv: list[str]) -> None:
    # Use RichHandler for logging, since our output goes through rich too.
    # But also turn off all the complex bits - we just want the message.
    logging.basicConfig(
        format="%(message)s",
        handlers=[rich.logging.RichHandler(show_time=False, show_level=False, show_path=False)],
    )

    subcommand = get_subcommand(argv)

    prog = "fhirkit"
    if subcommand:
        prog += f" {subcommand}"  # to make --help look nicer
    parser = argparse.ArgumentParser(prog=prog)

    if subcommand == Command.RESOLVE.value:
        run_method = commands.run_resolve
    elif subcommand == Command.SEARCH.value:
        run_method = commands.run_search
    elif subcommand == Command.METADATA.value:
        run_method = commands.run_metadata
    else:
        parser.usage = "%(prog)s COMMAND [OPTION]..."
        parser.description = "Talk to a FHIR server."
        parser.add_argument("command", choices=Command.values())
        parser.parse_args(argv)  # always exits, since no valid command was found above
        return

    await run_method(parser, argv)


def main_cli():
    asyncio.run(main(sys.argv[1:]))  # pragma: no cover


if __name__ == "__main__":
    main_cli()  # pragma: no cover
