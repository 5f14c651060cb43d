#!/usr/bin/env python3
"""Print each infix expression of a file in prefix notation.

One expression per line; a line that fails to parse is reported and skipped.
"""
import argparse as arg
import logging
import os
import sys

import polsky
from polsky_parser import ParseError

logger = logging.getLogger(__name__)

DEBUG = bool(os.getenv("DEBUG", False))


def convert(lines, reduce=False, out=None):
    out = out or sys.stdout
    for line in lines:
        if not (expr := line.strip()):
            continue
        try:
            out.write(f"{expr} -> {polsky.prefix(polsky.parse(expr), reduce)}\n")
        except ParseError as e:
            logger.debug("failed to parse %r", expr, exc_info=True)
            out.write(f"Error encountered: {e}\n")


def main(argv=None):
    parser = arg.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("file", type=arg.FileType("r"), help="input file, - for stdin")
    parser.add_argument(
        "-r",
        "--reduce",
        action="store_true",
        help="reduce each expression, evaluating integer math where possible",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log each reduction pass")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose or DEBUG else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
    )
    with args.file as src:
        convert(src, args.reduce)
    return 0


if __name__ == "__main__":
    sys.exit(main())
