"""Bindings for the identity provider and the change-log store."""
from .iam import IAMProvider
from .git import GitChangeLog

__all__ = ["IAMProvider", "GitChangeLog"]
