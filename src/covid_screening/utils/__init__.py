"""Shared helpers for the screening package (console logging)."""

from .logger import get_logger

__all__ = ["get_logger"]
