"""Repository package exposing persistence-layer access for the models."""

from __future__ import annotations

from sessionkeeper.repositories.base import BaseRepository
from sessionkeeper.repositories.user import UserRepository

__all__ = ["BaseRepository", "UserRepository"]
