"""Vulnerability scanning core: types, reports, RPC messages and handlers, scanners and plugins."""

__version__ = "0.1.0"