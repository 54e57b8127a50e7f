"""
Database Package
================
SQLAlchemy models for accounts, artifacts and writing suggestions.
"""

from .models import ARTIFACT_KINDS, Base, DocumentModel, SuggestionModel, UserModel

__all__ = ["ARTIFACT_KINDS", "Base", "DocumentModel", "SuggestionModel", "UserModel"]
