"""
rvasm Command-Line Interface
============================

This package provides the command-line tool for rvasm:

- **rvasm**: assembler, source file to flat binary image

The tool is a Click-based CLI application with help and error reporting.
"""

__all__ = ["rvasm"]
