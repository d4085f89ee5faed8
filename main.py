#!/usr/bin/env python3
"""DevStream 主入口"""

import sys

from devstream.cli import main

if __name__ == "__main__":
    sys.exit(main())
