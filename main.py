#!/usr/bin/env python3
"""
Night Orders - Main CLI Entry Point

Runs the same command group as the installed ``nightorders`` script.
"""

from nightorders.cli import main


if __name__ == "__main__":
    main()
