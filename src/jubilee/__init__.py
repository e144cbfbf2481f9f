"""Jubilee - tool-calling agent runtime with Triune orchestration and angel dispatch."""

__version__ = "0.3.0"
