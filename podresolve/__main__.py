#!/usr/bin/env python3
"""Main entry point for podresolve package."""

import sys
from podresolve.cli import main

if __name__ == "__main__":
    sys.exit(main())
