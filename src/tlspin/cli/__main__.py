import sys
import logging
import argparse
from pathlib import Path
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

from .. import __version__, constants
from ..config import load_config, get_config, DEFAULT_CONFIG
from ..exceptions import ConfigurationError
from ..pinning import PinningMode
from . import outputln
from .evaluate import evaluate
from .pins import pins

__module__ = "tlspin.cli"

assert sys.version_info >= (3, 9), "Requires Python 3.9 or newer"
console = Console()
logger = logging.getLogger(__name__)


class _HelpAction(argparse._HelpAction):
    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        parser.exit()


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-q",
        "--quiet",
        help="show no stdout, only the exit code reports the result",
        dest="quiet",
        action="store_true",
    )
    group = common.add_mutually_exclusive_group()
    group.add_argument(
        "-v",
        "--errors-only",
        help="set logging level to ERROR (default CRITICAL)",
        dest="log_level_error",
        action="store_true",
    )
    group.add_argument(
        "-vv",
        "--warning",
        help="set logging level to WARNING (default CRITICAL)",
        dest="log_level_warning",
        action="store_true",
    )
    group.add_argument(
        "-vvv",
        "--info",
        help="set logging level to INFO (default CRITICAL)",
        dest="log_level_info",
        action="store_true",
    )
    group.add_argument(
        "-vvvv",
        "--debug",
        help="set logging level to DEBUG (default CRITICAL)",
        dest="log_level_debug",
        action="store_true",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_parser()
    cli = argparse.ArgumentParser(
        prog="tlspin",
        description=f"Release {__version__}",
        add_help=False,
        parents=[common],
    )
    cli.add_argument("-h", "--help", action=_HelpAction)
    cli.add_argument("--version", dest="show_version", action="store_true")
    sub_parsers = cli.add_subparsers()

    evaluate_parser = sub_parsers.add_parser(
        "evaluate",
        prog="tlspin evaluate",
        description=cli.description,
        add_help=False,
        help="Fetch the certificate chain of a server and evaluate it against a security policy",
        parents=[common],
    )
    evaluate_parser.set_defaults(subcommand="evaluate")
    evaluate_parser.add_argument("-h", "--help", action=_HelpAction)
    evaluate_parser.add_argument("hostname", help="server to evaluate, HOST or HOST:PORT")
    evaluate_parser.add_argument(
        "-P",
        "--port",
        help="server port (Default: 443)",
        dest="port",
        type=int,
        default=None,
    )
    evaluate_parser.add_argument(
        "-m",
        "--mode",
        help="pinning mode, one of none, public_key, certificate",
        dest="pinning_mode",
        choices=[mode.value for mode in PinningMode],
        default=None,
    )
    evaluate_parser.add_argument(
        "--pin",
        help="path to a DER or PEM encoded certificate to pin, may be repeated",
        dest="pins",
        action="append",
        default=[],
    )
    evaluate_parser.add_argument(
        "-b",
        "--bundle",
        help="directory of .cer, .der or .crt files to pin",
        dest="bundle",
        default=None,
    )
    evaluate_parser.add_argument(
        "--allow-invalid",
        help="tolerate certificate chains the system does not trust",
        dest="allow_invalid",
        action="store_true",
    )
    evaluate_parser.add_argument(
        "--no-validate-domain",
        help="do not require the leaf certificate to match the hostname",
        dest="no_validate_domain",
        action="store_true",
    )
    evaluate_parser.add_argument(
        "-c",
        "--cafile",
        help="path to a PEM encoded CA bundle used instead of the certifi bundle",
        dest="cafile",
        default=None,
    )
    evaluate_parser.add_argument(
        "-p",
        "--config-path",
        help=f"Provide the path to a configuration file (Default: {DEFAULT_CONFIG})",
        dest="config_file",
        default=DEFAULT_CONFIG,
    )
    evaluate_parser.add_argument(
        "--disable-sni",
        help="Do not negotiate SNI using INDA encoded host",
        dest="disable_sni",
        action="store_true",
    )

    pins_parser = sub_parsers.add_parser(
        "pins",
        prog="tlspin pins",
        description=cli.description,
        add_help=False,
        help="Show the fingerprints and SPKI pins of certificate files or bundles",
        parents=[common],
    )
    pins_parser.set_defaults(subcommand="pins")
    pins_parser.add_argument("-h", "--help", action=_HelpAction)
    pins_parser.add_argument("paths", nargs="+", help="certificate files or bundle directories")
    return cli


def _evaluate_config(cli_args: dict, filename: Union[str, None]) -> dict:
    custom = load_config(filename) if filename else {}
    config = get_config(custom_values=custom)
    policy = config["policy"]
    if cli_args.get("pinning_mode"):
        policy["pinning_mode"] = cli_args["pinning_mode"]
    if cli_args.get("pins"):
        policy["pinned_certificates"] = [
            str(Path(file_name).absolute()) for file_name in cli_args["pins"]
        ]
    if cli_args.get("bundle"):
        policy["certificate_bundle"] = str(Path(cli_args["bundle"]).absolute())
    if cli_args.get("allow_invalid"):
        policy["allow_invalid_certificates"] = True
    if cli_args.get("no_validate_domain"):
        policy["validates_domain_name"] = False
    if cli_args.get("cafile"):
        config["validator"]["cafile"] = str(Path(cli_args["cafile"]).absolute())
    return config


def _split_target(target: str, port: Union[int, None]) -> tuple:
    hostname, _, port_value = target.partition(":")
    if port is None:
        port = int(port_value) if port_value else 443
    return hostname, port


def main(argv: Union[list, None] = None) -> int:
    cli = build_parser()
    args = cli.parse_args(argv)
    if args.show_version:
        console.print(f"tlspin=={__version__}")
        return 0

    try:
        logger.info(f"subcommand {args.subcommand}")
    except AttributeError:
        cli.print_help()
        return 0

    log_level = logging.CRITICAL
    if args.log_level_error:
        log_level = logging.ERROR
    if args.log_level_warning:
        log_level = logging.WARNING
    if args.log_level_info:
        log_level = logging.INFO
    if args.log_level_debug:
        log_level = logging.DEBUG

    handlers = []
    log_format = "%(asctime)s - %(name)s - [%(levelname)s] %(message)s"
    if not args.quiet and sys.stdout.isatty():
        log_format = "%(message)s"
        handlers.append(RichHandler(rich_tracebacks=True))
    logging.basicConfig(format=log_format, level=log_level, handlers=handlers or None)
    con = None if args.quiet else console

    if args.subcommand == "pins":
        return 0 if pins(args.paths, con=con) else 1

    try:
        config = _evaluate_config(vars(args), args.config_file)
        hostname, port = _split_target(args.hostname, args.port)
        if Path(args.config_file).is_file():
            outputln(
                args.config_file, aside="core", result_text="CONFIG", con=con
            )
        trusted = evaluate(
            config, hostname, port=port, use_sni=not args.disable_sni, con=con
        )
    except (ConfigurationError, ValueError, TypeError) as ex:
        logger.debug(ex, stack_info=True)
        if con:
            con.print(
                f"[{constants.CLI_COLOR_FAIL}]{ex}[/{constants.CLI_COLOR_FAIL}]"
            )
        return 2
    return 0 if trusted else 1


if __name__ == "__main__":
    sys.exit(main())
