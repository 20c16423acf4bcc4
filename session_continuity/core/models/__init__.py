"""Pydantic domain models for the continuity engine."""

from .base import BaseSchema

__all__ = ["BaseSchema"]
