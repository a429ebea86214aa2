#!/usr/bin/env python3

import sys
from lib.setup_common import setup_main


def main() -> int:
    return setup_main("Basic Server Setup")


if __name__ == "__main__":
    sys.exit(main())
