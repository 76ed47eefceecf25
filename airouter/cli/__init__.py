"""Command line interface for ai-router."""

from airouter.cli.main import app, main

__all__ = ["app", "main"]
