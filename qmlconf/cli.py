# SPDX-License-Identifier: MIT
"""Command-line interface for qmlconf."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from qmlconf.configure.controller import RunController
from qmlconf.configure.harness import MakeHarness, find_make
from qmlconf.configure.options import VARIABLES, ConfigOptions
from qmlconf.configure.platform import detect_platform
from qmlconf.configure.probe import Harness, ProbeLog
from qmlconf.configure.writer import save_json, write_config_mk
from qmlconf.core.errors import ConfigureError

# Set up logging
logger = logging.getLogger("qmlconf")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def parse_variables(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Parse KEY=value arguments from a list.

    Args:
        args: List of arguments.

    Returns:
        Tuple of (variables dict, remaining args).
    """
    variables: dict[str, str] = {}
    remaining: list[str] = []

    for arg in args:
        if "=" in arg and not arg.startswith("-"):
            key, _, value = arg.partition("=")
            if key:  # Valid KEY=value
                variables[key] = value
            else:
                remaining.append(arg)
        else:
            remaining.append(arg)

    return variables, remaining


def create_harness(make: str, source_dir: Path) -> Harness:
    """Create the test harness for probing."""
    return MakeHarness(make, source_dir)


def locate_make() -> str:
    """Find GNU make, reporting progress.

    Raises:
        HarnessUnavailable: If there is no GNU make.
    """
    print("looking for GNU make... ", end="", flush=True)
    try:
        make = find_make()
    except ConfigureError:
        print("not found")
        raise
    print(make)
    return make


def variables_epilog() -> str:
    lines = ["variables (KEY=value):"]
    for name, help_text in VARIABLES.items():
        lines.append(f"  {name:<12} {help_text}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qmlconf",
        description="Probe the toolchain and write config.mk for building qml.",
        epilog=variables_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    from qmlconf import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")

    blas = parser.add_argument_group("BLAS options (needed for LAPACK)")
    blas.add_argument(
        "--build-blas", action="store_true", help="build Netlib BLAS (fast build)"
    )
    blas.add_argument(
        "--build-openblas",
        nargs="?",
        const="dynamic",
        metavar="ARCH",
        help="build OpenBLAS, for ARCH if given as --build-openblas=ARCH "
        "(native, generic, sandybridge, etc.; default: dynamic architecture)",
    )
    blas.add_argument(
        "--with-blas", metavar="PATH", help="use system BLAS library"
    )

    lapack = parser.add_argument_group("LAPACK options")
    lapack.add_argument(
        "--build-lapack", action="store_true", help="build Netlib LAPACK"
    )
    lapack.add_argument(
        "--with-lapack", metavar="PATH", help="use system LAPACK library"
    )

    files = parser.add_argument_group("files")
    files.add_argument(
        "-S",
        "--source-dir",
        default=".",
        help="Source directory containing mk/test.mk (default: .)",
    )
    files.add_argument(
        "-o", "--output", default="config.mk", help="Output file (default: config.mk)"
    )
    files.add_argument("--json", metavar="PATH", help="Also save configuration as JSON")
    files.add_argument(
        "--log",
        default="conftest.log",
        help="Probe log file (default: conftest.log)",
    )
    files.add_argument(
        "--q", dest="q", default="q", help="q executable used for detection"
    )

    parser.add_argument("extra", nargs="*", help="Variables (KEY=value)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the qmlconf CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.debug)

    variables, remaining = parse_variables(args.extra)
    if remaining:
        logger.error("unknown configure option %s, try --help", remaining[0])
        return 1

    try:
        options = ConfigOptions.from_variables(
            variables,
            build_blas=args.build_blas,
            build_openblas=args.build_openblas,
            with_blas=args.with_blas,
            build_lapack=args.build_lapack,
            with_lapack=args.with_lapack,
        )
        options.check_conflicts()
        platform = detect_platform(
            options.KXARCH, options.KXVER, options.QHOME, q=args.q
        )
        make = locate_make()
    except ConfigureError as e:
        logger.error("%s", e.message)
        return e.exit_code

    source_dir = Path(args.source_dir)
    harness = create_harness(make, source_dir)
    logger.debug("options: %r", options)
    logger.debug("harness: %r", harness)

    controller = RunController(options, platform, harness, log=ProbeLog(args.log))
    result = controller.run()
    environment = result.environment
    if environment is None:
        logger.error("%s", result.error)
        logger.info("see %s for details", args.log)
        return result.exit_code

    print(f"writing configuration to {args.output}")
    write_config_mk(environment, args.output)
    if args.json:
        save_json(environment, args.json)
        logger.info("saved %s", args.json)

    print(f"now run {make}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
