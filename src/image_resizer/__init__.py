"""Resize/crop images over HTTP with a fingerprint-addressed disk cache."""

__version__ = "0.1.0"
