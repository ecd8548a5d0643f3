"""Command line entry point: resolve coordinates, print or download their closure."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Sequence

from .common.logging_utils import configure_logging, extra_context, is_debug_enabled
from .config import ResolverConfig
from .constants import ExitCodes
from .errors import ConfigError
from .events import EventSink, LoggingEventSink, SilentEventSink
from .models import Coordinate
from .resolver.engine import Resolver
from .resolver.graph import Artifact

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="depfetch",
        description="Resolve and download Maven artifacts with their transitive dependencies",
        add_help=True,
    )
    parser.add_argument("coordinates",
                        metavar="GROUP:ARTIFACT[:VERSION]",
                        help="Coordinates to resolve; a missing version resolves to the latest release",
                        nargs="+")
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Directory to download the resolved artifacts into",
                        action="store",
                        type=str)
    parser.add_argument("--tree",
                        dest="TREE",
                        help="Print the dependency tree of each root",
                        action="store_true")
    parser.add_argument("--list",
                        dest="LIST",
                        help="Print every resolved coordinate, one per line",
                        action="store_true")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to a YAML config file",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--error-on-warnings",
                        dest="ERROR_ON_WARNINGS",
                        help="Exit with a non-zero status code if a root is missing or a download fails.",
                        action="store_true")
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output to console.",
                        action="store_true")
    return parser.parse_args(argv)


def parse_coordinates(values: Sequence[str]) -> List[Coordinate]:
    """Parse CLI coordinate tokens.

    Raises:
        ValueError: on the first malformed token.
    """
    return [Coordinate.parse(value) for value in values]


def _report(root: Artifact, args: argparse.Namespace) -> None:
    if args.QUIET:
        return
    if args.TREE:
        root.print_tree()
    if args.LIST:
        for artifact in [root, *root.all_dependencies()]:
            print(artifact)


async def _run(coordinates: List[Coordinate], config: ResolverConfig, events: EventSink,
               args: argparse.Namespace) -> bool:
    """Resolve each root in turn; returns False when any root or download failed."""
    clean = True
    async with Resolver(config=config, events=events) as resolver:
        for coordinate in coordinates:
            root = await resolver.resolve(coordinate.group_id, coordinate.artifact_id, coordinate.version)
            if root is None:
                logger.warning("Could not resolve %s", coordinate)
                clean = False
                continue
            _report(root, args)
            if args.OUTPUT:
                report = await root.download_to(args.OUTPUT)
                if not report.ok:
                    clean = False
    return clean


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging("ERROR" if args.QUIET else args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug("CLI start", extra=extra_context(
            event="function_entry", component="cli", action="main", count=len(args.coordinates)
        ))

    try:
        coordinates = parse_coordinates(args.coordinates)
    except ValueError as exc:
        logger.error("%s", exc)
        sys.exit(ExitCodes.USAGE_ERROR.value)

    try:
        config = ResolverConfig.load(args.CONFIG)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    events: EventSink = SilentEventSink() if args.QUIET else LoggingEventSink()
    clean = asyncio.run(_run(coordinates, config, events, args))

    if not clean:
        logger.warning("One or more coordinates could not be resolved or downloaded.")
        if args.ERROR_ON_WARNINGS:
            sys.exit(ExitCodes.EXIT_WARNINGS.value)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
