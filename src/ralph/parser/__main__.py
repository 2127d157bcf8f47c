"""Entry point for `agent ... | python -m ralph.parser WORKSPACE`."""

import sys

from ralph.cli import parse

if __name__ == "__main__":
    parse(prog_name="python -m ralph.parser", args=sys.argv[1:])
