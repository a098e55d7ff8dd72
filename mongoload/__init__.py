"""Shared library code for mongo-loadsim: logging, errors, config, database client."""

__version__ = "0.1.0"
