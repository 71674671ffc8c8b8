"""Custom exceptions for Frontmatter Sync."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all sync errors."""


class ConfigError(SyncError):
    """Settings file is invalid or contains a misconfigured rule."""

    def __init__(self, message: str, path: str = "", index: int | None = None):
        self.path = path
        self.index = index
        super().__init__(message)


class FrontmatterError(SyncError):
    """Document has no frontmatter block that could be rewritten."""


class DocumentWriteError(SyncError):
    """Writing an updated document back to disk failed."""

    def __init__(self, message: str, doc_path: str = ""):
        self.doc_path = doc_path
        super().__init__(message)
