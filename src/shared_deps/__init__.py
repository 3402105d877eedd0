#!/usr/bin/env python3

"""
Self-Hosted Shared Dependencies

Mirrors selected versions of npm packages into a local directory tree,
keeping only the files each version needs, so they can be served from a
private host instead of a public registry.
"""

__version__ = "1.0.0"
__author__ = "Shared Dependencies Project"
