"""
Artifact - A tool for collecting selected project files into a flat directory.

This package provides functionality to read a pattern-based configuration
file, walk a source tree, select the files the rules include, and copy them
into a single flat output directory together with a metadata.json document
recording where each file came from.
"""

__version__ = "0.1.0"
