"""Lockfile models and persistence for CraftDesk."""

from craftdesk.lockfile.models import (
    GIT_INTEGRITY_PREFIX,
    LOCKFILE_VERSION,
    LockEntry,
    Lockfile,
    LockfileMetadata,
    PluginTreeNode,
)
from craftdesk.lockfile.store import LockfileStore

__all__ = [
    "GIT_INTEGRITY_PREFIX",
    "LOCKFILE_VERSION",
    "LockEntry",
    "Lockfile",
    "LockfileMetadata",
    "LockfileStore",
    "PluginTreeNode",
]
