"""Utility functions."""

from eegclean.utils.logging import setup_logging

__all__ = ["setup_logging"]
