"""Command line bootstrap for inkloop."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient
from .ai.orchestration.events import EditEventSink, JsonlEventSink, LoggingEventSink
from .ai.orchestration.oracle import AIClientOracle
from .ai.orchestration.orchestrator import EditOrchestrator
from .ai.orchestration.tools.circuit_breaker import CircuitBreaker
from .ai.orchestration.types import EditRunResult, RunStatus
from .services.document_store import DocumentNotFoundError, DocumentStore, FileDocumentStore
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils

__all__ = ["main", "build_parser", "load_settings", "run_edit", "exit_code_for"]

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BLOCKED = 2

_EXIT_CODES = {
    RunStatus.COMPLETED: EXIT_OK,
    RunStatus.NO_EDIT: EXIT_OK,
    RunStatus.BLOCKED: EXIT_BLOCKED,
    RunStatus.ERROR: EXIT_ERROR,
}


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the command line."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings, falling back to defaults on unreadable files."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def exit_code_for(status: RunStatus) -> int:
    return _EXIT_CODES[status]


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``inkloop`` console script."""

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return EXIT_ERROR

    debug = bool(args.debug) or _env_flag("INKLOOP_DEBUG")
    configure_logging(debug)

    settings_path = args.settings or os.environ.get("INKLOOP_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_BLOCKED

    if args.command == "edit":
        cli_overrides.update(_edit_overrides(args))
    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.command == "settings":
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return EXIT_OK

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    return asyncio.run(
        run_edit(
            settings,
            args.path,
            args.instruction,
            dry_run=args.dry_run,
            event_log=args.event_log or settings.debug_event_logging,
        )
    )


async def run_edit(
    settings: Settings,
    path: str,
    instruction: str,
    *,
    dry_run: bool = False,
    event_log: bool = False,
    orchestrator: EditOrchestrator | None = None,
    store: DocumentStore | None = None,
    stream: TextIO | None = None,
) -> int:
    """Edit *path* according to *instruction* and print a JSON summary."""

    destination = stream or sys.stdout
    sink: EditEventSink = JsonlEventSink() if event_log else LoggingEventSink()
    client: AIClient | None = None
    if orchestrator is None:
        client = AIClient(settings.client_settings())
        orchestrator = EditOrchestrator(
            AIClientOracle(client),
            config=settings.orchestrator_config(),
            circuit_breaker=CircuitBreaker(
                failure_threshold=settings.circuit_failure_threshold,
                reset_after=settings.circuit_reset_seconds,
            ),
            event_sink=sink,
            token_counter=client.get_token_counter(),
        )

    try:
        result = await orchestrator.edit_document(
            store or FileDocumentStore(),
            path,
            instruction,
            dry_run=dry_run,
        )
    except DocumentNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_ERROR
    finally:
        if client is not None:
            await client.aclose()
        if isinstance(sink, JsonlEventSink):
            sink.close()

    json.dump(_summary_payload(result, dry_run=dry_run), destination, indent=2)
    destination.write("\n")
    return exit_code_for(result.status)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--debug", action="store_true", help="Enable debug logging.")
    common.add_argument(
        "--settings",
        metavar="PATH",
        help="Override the default ~/.inkloop/settings.json path.",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings (repeatable).",
    )

    parser = argparse.ArgumentParser(
        prog="inkloop",
        description="Let a language model edit a file until the instruction is satisfied.",
    )
    subcommands = parser.add_subparsers(dest="command")

    edit = subcommands.add_parser("edit", parents=[common], help="Edit a file in place.")
    edit.add_argument("path", help="File to edit.")
    edit.add_argument("instruction", help="What the edit should achieve.")
    edit.add_argument("--model", help="Model identifier to use.")
    edit.add_argument("--max-iterations", type=int, metavar="N", help="Iteration limit for the run.")
    edit.add_argument(
        "--no-stream",
        dest="stream",
        action="store_false",
        default=None,
        help="Request complete responses instead of streams.",
    )
    edit.add_argument("--dry-run", action="store_true", help="Do not write the edited file.")
    edit.add_argument("--event-log", action="store_true", help="Write a JSONL event log for the run.")

    subcommands.add_parser("settings", parents=[common], help="Print the effective settings (secrets redacted).")
    return parser


def _edit_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.model:
        overrides["model"] = args.model
    if args.max_iterations is not None:
        overrides["max_iterations"] = max(1, args.max_iterations)
    if args.stream is not None:
        overrides["stream_responses"] = args.stream
    return overrides


def _summary_payload(result: EditRunResult, *, dry_run: bool) -> Dict[str, Any]:
    return {
        "run_id": result.run_id,
        "status": result.status.value,
        "summary": result.summary,
        "reason": result.reason,
        "error": result.error,
        "changes": result.changes_count,
        "iterations": result.stats.iteration_count,
        "saved": result.goal_achieved and not dry_run,
        "checkpoints": [checkpoint.checkpoint_id for checkpoint in result.checkpoints],
        "prompt_tokens": result.stats.prompt_tokens,
        "tokens_saved": result.stats.tokens_saved,
    }


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is type(None) or normalized.lower() in {"none", "null"}:
        return None
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("INKLOOP_"))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
