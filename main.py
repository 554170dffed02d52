#!/usr/bin/env python3
"""
Entry point for the photo mirror tool.
"""

import sys

from photomirror.cli import main


if __name__ == "__main__":
    sys.exit(main())
