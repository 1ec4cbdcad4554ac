"""Helper methods for CLI parsing."""

import argparse
import contextlib
import logging
import urllib.parse
from collections.abc import Iterator

from fhirkit import common, errors, fhir


def add_server(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("server")
    group.add_argument("--fhir-url", metavar="URL", required=True, help="FHIR server base URL")
    group.add_argument(
        "--bearer-token", metavar="PATH", help="token file for Bearer authentication"
    )
    group.add_argument(
        "--header",
        metavar="'NAME: VALUE'",
        action="append",
        help="extra header to send with every request (can be repeated)",
    )


def add_debugging(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("debugging")
    group.add_argument("--verbose", action="store_true", help="log every request and response")


def apply_debugging(args: argparse.Namespace) -> None:
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def parse_headers(values: list[str] | None) -> dict[str, str]:
    """Turns ["Name: value", ...] into a header dictionary"""
    headers = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            errors.fatal(
                f"Could not understand header '{value}'. Use 'Name: value'.", errors.ARGS_INVALID
            )
        headers[name.strip()] = content.strip()
    return headers


def parse_params(values: list[str] | None) -> list[tuple[str, str]]:
    """Turns ["key=value", ...] into search parameter pairs (keys may repeat)"""
    params = []
    for value in values or []:
        key, sep, content = value.partition("=")
        if not sep or not key:
            errors.fatal(
                f"Could not understand parameter '{value}'. Use 'key=value'.", errors.ARGS_INVALID
            )
        params.append((key, content))
    return params


def create_fhir_client_for_cli(args: argparse.Namespace) -> fhir.FhirClient:
    """
    Create a FhirClient instance, based on user input from the CLI.

    The usual server options (see add_server) should be represented in args.
    """
    parsed = urllib.parse.urlsplit(args.fhir_url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        errors.fatal(f"Could not parse URL '{args.fhir_url}'", errors.ARGS_INVALID)

    try:
        bearer_token = common.read_text(args.bearer_token).strip() if args.bearer_token else None
    except OSError as exc:
        errors.fatal(str(exc), errors.ARGS_INVALID)

    return fhir.FhirClient(
        args.fhir_url,
        custom_headers=parse_headers(args.header),
        bearer_token=bearer_token,
    )


@contextlib.contextmanager
def fatal_on_fhir_errors() -> Iterator[None]:
    """Turns library errors into a user-friendly exit"""
    try:
        yield
    except errors.InvalidReference as exc:
        errors.fatal(str(exc), errors.REFERENCE_INVALID)
    except errors.UnresolvableContainedReference as exc:
        errors.fatal(str(exc), errors.REFERENCE_UNRESOLVABLE)
    except errors.NetworkError as exc:
        errors.fatal(str(exc), errors.NETWORK_FAILED)
