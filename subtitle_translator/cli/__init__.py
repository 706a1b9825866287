"""Command line interface for subtitle-translator."""

from __future__ import annotations

from .args import build_cli_parser, parse_cli_args
from .main import main

__all__ = ["build_cli_parser", "main", "parse_cli_args"]
