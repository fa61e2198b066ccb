"""
Exception handlers for the Lumi agent server.
"""

from .global_handler import setup_exception_handlers

__all__ = ["setup_exception_handlers"]
