"""
CLI module for the lmproc package.

Provides the ``lmproc`` command for parsing model output from the shell.
"""

from lmproc.cli.main import build_parser, main

__all__ = [
    "main",
    "build_parser",
]
