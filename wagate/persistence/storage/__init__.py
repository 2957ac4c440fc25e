"""Durable object storage backends."""

from .filesystem import LocalObjectStorage

__all__ = ["LocalObjectStorage"]
