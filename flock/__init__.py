"""Flock: social graph and engagement backend."""

__version__ = "0.1.0"
