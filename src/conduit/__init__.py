"""MCP tool servers exposing git and Google Drive."""

from __future__ import annotations

__version__ = "0.1.0"

from .server import main_drive, main_git

__all__ = ["__version__", "main_drive", "main_git"]
