"""
CraftDesk - dependency manager for AI coding assistant crafts

Resolves skills, agents, commands, hooks and plugins from a registry or git,
expands plugin dependency graphs, and installs them with a lockfile.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("craftdesk")
except PackageNotFoundError:
    __version__ = "0.3.0"

__all__ = [
    "__version__",
]
