"""
bootpush Command-Line Interface
===============================

This package provides the ``bootpush`` command, a Click-based CLI that
pushes a binary image to a target board and opens a terminal on it.
"""

__all__ = ["bootpush"]
