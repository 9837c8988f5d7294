"""Storefront checkout client for a remote commerce backend."""

__version__ = "0.1.0"
