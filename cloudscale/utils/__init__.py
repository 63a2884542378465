"""Shared helpers for cloudscale."""
from .events import EventEmitter

__all__ = ["EventEmitter"]
