"""Linkage CLI: static linkage checks and Maven dependency graphs for jar files."""

__version__ = "0.1.0"
