"""Governance core for a delegable volunteer task tree."""

__version__ = "0.1.0"
