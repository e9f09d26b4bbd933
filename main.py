#!/usr/bin/env python3
"""Simulator Location Toolbox - Main entry point."""

import sys

from simlocation.application import main


if __name__ == '__main__':
    sys.exit(main())
