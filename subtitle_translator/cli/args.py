"""Argument parsing helpers for the subtitle-translator CLI."""

from __future__ import annotations

import argparse
from typing import Any, Dict, Optional, Sequence

from subtitle_translator.config_manager import VALID_PROFILES, VALID_PROVIDERS


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        default=None,
        help=(
            "Path to a configuration JSON file (defaults to ./subtitle_translator.json "
            "if present)."
        ),
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL of the session database (defaults to a local SQLite file).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")
    return parser


def _add_translate_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument("input_file", help="Path to the SRT or WebVTT file to translate.")
    parser.add_argument(
        "-o",
        "--output",
        dest="output_file",
        help="Destination SRT file (defaults to <input>.<target>.srt).",
    )
    parser.add_argument("-s", "--source-language", help="Language of the input subtitles.")
    parser.add_argument("-t", "--target-language", help="Language to translate into.")
    parser.add_argument(
        "--profile",
        choices=sorted(VALID_PROFILES),
        help="Pipeline preset: fast, default or quality.",
    )
    parser.add_argument(
        "--provider",
        choices=sorted(VALID_PROVIDERS),
        help="Translation backend (mock echoes the input for dry runs).",
    )
    parser.add_argument("--model", help="Model name passed to the provider.")
    parser.add_argument("--ollama-url", dest="api_url", help="Override the Ollama chat URL.")
    parser.add_argument(
        "--concurrency",
        dest="max_concurrency",
        type=int,
        help="Maximum number of documents translated at the same time.",
    )
    parser.add_argument(
        "--dispatch-delay",
        dest="dispatch_delay_seconds",
        type=float,
        help="Minimum delay in seconds between two provider dispatches.",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        help="Split the file into chunks of this many entries translated in parallel.",
    )
    parser.add_argument(
        "--instructions",
        dest="custom_instructions",
        help="Extra instructions appended to every translation request.",
    )
    parser.add_argument(
        "--no-analysis",
        dest="enable_analysis",
        action="store_false",
        default=None,
        help="Skip glossary, scene and speaker analysis.",
    )
    parser.add_argument(
        "--no-validation",
        dest="enable_validation",
        action="store_false",
        default=None,
        help="Skip the validation and auto-repair pass.",
    )
    parser.add_argument(
        "--no-cache",
        dest="enable_cache",
        action="store_false",
        default=None,
        help="Do not reuse or store translations in the translation cache.",
    )
    parser.add_argument(
        "--resume",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Resume a matching unfinished session (default: on).",
    )
    return _add_shared_arguments(parser)


def build_cli_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with explicit sub-commands."""

    parser = argparse.ArgumentParser(
        prog="subtitle-translator",
        description="Translate subtitle files with a language model.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    translate_parser = subparsers.add_parser(
        "translate", help="Translate a subtitle file", allow_abbrev=False
    )
    _add_translate_arguments(translate_parser)

    sessions_parser = subparsers.add_parser(
        "sessions", help="List stored translation sessions", allow_abbrev=False
    )
    sessions_parser.add_argument(
        "--status",
        choices=["in_progress", "paused", "completed", "failed"],
        help="Only list sessions with this status.",
    )
    _add_shared_arguments(sessions_parser)
    return parser


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_cli_parser().parse_args(argv)


_SETTINGS_FIELDS = (
    "source_language",
    "target_language",
    "provider",
    "model",
    "api_url",
    "profile",
    "max_concurrency",
    "dispatch_delay_seconds",
    "custom_instructions",
    "enable_analysis",
    "enable_validation",
    "enable_cache",
    "database_url",
)


def settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Return the settings explicitly provided on the command line."""

    overrides = {name: getattr(args, name, None) for name in _SETTINGS_FIELDS}
    if getattr(args, "debug", False):
        overrides["debug"] = True
    return {key: value for key, value in overrides.items() if value is not None}


__all__ = ["build_cli_parser", "parse_cli_args", "settings_overrides"]
