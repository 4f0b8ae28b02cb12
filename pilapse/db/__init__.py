"""Database package."""

from .models import Base, PhotoRecord, PhotoState
from .session import get_engine, get_session

__all__ = ["Base", "PhotoRecord", "PhotoState", "get_engine", "get_session"]
