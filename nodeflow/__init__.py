"""Workflow sequencing and node execution engine."""

__version__ = "0.1.0"
