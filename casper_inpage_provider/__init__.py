"""Casper in-page JSON-RPC provider."""

__version__ = "0.3.2"
