"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import FusionCIModalCLI, main

__all__ = ['FusionCIModalCLI', 'main']
