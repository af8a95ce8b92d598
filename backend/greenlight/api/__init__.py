"""
HTTP API for Greenlight.

Routers are thin: decode the body, validate, call a store, write the
envelope. All error responses are produced by responses.py from raised
exceptions; handlers never build error bodies themselves.
"""

from .app import create_app

__all__ = ["create_app"]
