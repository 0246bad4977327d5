"""
Database models package.
"""
from photolog.models.photo import PhotoRecord

__all__ = ["PhotoRecord"]
