import argparse
import logging
import sys

from . import build, generate  # noqa: F401  (registers the commands)
from .command_registry import command_specs
from .evaluate import FAILED, INTERRUPTED


def build_parser():
    parser = argparse.ArgumentParser(
        prog="pybooks",
        description="Build books from Markdown with embedded Python.",
    )
    subparsers = parser.add_subparsers(dest="command")
    for name, spec in sorted(command_specs().items()):
        subparser = subparsers.add_parser(
            name, help=spec["help"], description=spec["description"]
        )
        subparser.set_defaults(handler=spec["handler"])
        for argument in spec["arguments"]:
            kwargs = dict(argument["kwargs"])
            if argument["flags"][0].startswith("--"):
                kwargs["dest"] = argument["dest"]
            subparser.add_argument(*argument["flags"], **kwargs)
    return parser


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO, format="%(levelname)s: %(message)s"
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help(sys.stderr)
        return 1
    kwargs = {
        k: v for k, v in vars(args).items() if k not in ("command", "handler")
    }
    result = args.handler(**kwargs)
    if result in (FAILED, INTERRUPTED):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
