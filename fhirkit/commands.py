"""The resolve, search, and metadata subcommands"""

import argparse
import dataclasses

from fhirkit import cli_utils, common, errors

###############################################################################
#
# resolve
#
###############################################################################


def define_resolve_parser(parser: argparse.ArgumentParser) -> None:
    parser.usage = "%(prog)s [OPTION]... REFERENCE"
    parser.description = "Print the resource that a FHIR reference points at."

    parser.add_argument("reference", metavar="REFERENCE", help="like Patient/123 or #contained-id")
    parser.add_argument(
        "--context",
        metavar="PATH",
        help="JSON file with a Bundle or resource to look inside before asking the server",
    )

    cli_utils.add_server(parser)
    cli_utils.add_debugging(parser)


async def resolve_main(args: argparse.Namespace) -> None:
    context = None
    if args.context:
        try:
            context = common.read_json(args.context)
        except (OSError, ValueError) as exc:
            errors.fatal(f"Could not read context file: {exc}", errors.ARGS_INVALID)
        if not isinstance(context, dict):
            errors.fatal("Context file must hold a JSON object", errors.ARGS_INVALID)

    async with cli_utils.create_fhir_client_for_cli(args) as client:
        with cli_utils.fatal_on_fhir_errors():
            resource = await client.resolve(args.reference, context)

    common.print_json(resource)


async def run_resolve(parser: argparse.ArgumentParser, argv: list[str]) -> None:
    """Parses a resolve CLI"""
    define_resolve_parser(parser)
    args = parser.parse_args(argv)
    cli_utils.apply_debugging(args)
    await resolve_main(args)


###############################################################################
#
# search
#
###############################################################################


def define_search_parser(parser: argparse.ArgumentParser) -> None:
    parser.usage = "%(prog)s [OPTION]... RESOURCE"
    parser.description = "Search a FHIR server and print the result bundles."

    parser.add_argument("resource_type", metavar="RESOURCE", help="like Patient or Observation")
    parser.add_argument(
        "--param",
        metavar="KEY=VALUE",
        action="append",
        help="search parameter (can be repeated)",
    )

    group = parser.add_argument_group("paging")
    group.add_argument(
        "--pages",
        metavar="N",
        type=int,
        default=1,
        help="follow next links until N pages are printed (default is 1)",
    )
    group.add_argument(
        "--page",
        metavar="N",
        type=int,
        help="jump straight to page N, using the paging parameters of the first page",
    )

    cli_utils.add_server(parser)
    cli_utils.add_debugging(parser)


async def search_main(args: argparse.Namespace) -> None:
    if args.pages < 1:
        errors.fatal("--pages must be at least 1", errors.ARGS_INVALID)
    if args.page is not None and args.pages != 1:
        errors.fatal("Only one of --page and --pages can be used at once", errors.ARGS_CONFLICT)

    params = cli_utils.parse_params(args.param)

    async with cli_utils.create_fhir_client_for_cli(args) as client:
        with cli_utils.fatal_on_fhir_errors():
            bundle = await client.search(args.resource_type, params)
            pages = client.pagination()
            pages.initialize(bundle)

            if args.page is not None:
                try:
                    bundle = await pages.go_to_page(args.page)
                except ValueError as exc:
                    errors.fatal(str(exc), errors.PAGE_INVALID)
                common.print_json(bundle)
                return

            common.print_json(bundle)
            for _ in range(args.pages - 1):
                bundle = await pages.next_page()
                if bundle is None:
                    break
                common.print_json(bundle)


async def run_search(parser: argparse.ArgumentParser, argv: list[str]) -> None:
    """Parses a search CLI"""
    define_search_parser(parser)
    args = parser.parse_args(argv)
    cli_utils.apply_debugging(args)
    await search_main(args)


###############################################################################
#
# metadata
#
###############################################################################


def define_metadata_parser(parser: argparse.ArgumentParser) -> None:
    parser.usage = "%(prog)s [OPTION]..."
    parser.description = "Print the SMART OAuth endpoints that a FHIR server advertises."

    parser.add_argument(
        "--well-known",
        action="store_true",
        help="read .well-known/smart-configuration instead of the CapabilityStatement",
    )

    cli_utils.add_server(parser)
    cli_utils.add_debugging(parser)


async def metadata_main(args: argparse.Namespace) -> None:
    async with cli_utils.create_fhir_client_for_cli(args) as client:
        with cli_utils.fatal_on_fhir_errors():
            if args.well_known:
                metadata = await client.smart_configuration()
            else:
                metadata = await client.smart_auth_metadata()

    endpoints = {}
    for field in dataclasses.fields(metadata):
        url = getattr(metadata, field.name)
        endpoints[field.name] = str(url) if url is not None else None
    common.print_json(endpoints)


async def run_metadata(parser: argparse.ArgumentParser, argv: list[str]) -> None:
    """Parses a metadata CLI"""
    define_metadata_parser(parser)
    args = parser.parse_args(argv)
    cli_utils.apply_debugging(args)
    await metadata_main(args)
