#!/usr/bin/env python3

"""
Command-line interface wrapper for self-hosted-shared-dependencies.

This module serves as the entry point for the shared-deps command when the
package is installed via pip.
"""

import sys
import asyncio

def main():
    """Entry point for the shared-deps CLI command."""
    from .main import main as main_func
    sys.exit(asyncio.run(main_func()))

if __name__ == "__main__":
    main()
