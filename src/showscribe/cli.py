"""Command-line interface for showscribe.

Commands:
    showscribe serve [--host HOST] [--port PORT]   run the HTTP API (uvicorn)
    showscribe generate TRANSCRIPT_FILE            print show-notes as JSON
    showscribe transcribe AUDIO_FILE               print the transcript and metadata as JSON
"""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import ValidationError

from . import __version__, config
from .exceptions import ShowScribeError
from .intake import MediaUpload
from .service import ShowScribeService, create_service
from .utils.log_setup import apply_log_level

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="showscribe",
        description="Generate podcast show-notes from transcripts and audio.",
    )
    parser.add_argument("--config", default=None, help="Path to configuration file (JSON or YAML)")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--version", action="version", version=f"showscribe {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=DEFAULT_HOST, help="Bind address")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help="Bind port")

    generate = subparsers.add_parser("generate", help="Generate show-notes for a transcript file")
    generate.add_argument("transcript_file", help="Path to a UTF-8 transcript")
    generate.add_argument("--output", default=None, help="Write JSON here instead of stdout")

    transcribe = subparsers.add_parser("transcribe", help="Transcribe an MP3 or WAV file")
    transcribe.add_argument("audio_file", help="Path to the audio file")
    transcribe.add_argument("--output", default=None, help="Write JSON here instead of stdout")

    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> config.Config:
    data: Dict[str, Any] = config.load_config_file(args.config) if args.config else {}
    if args.log_level:
        data["log_level"] = args.log_level
    if args.log_file:
        data["log_file"] = args.log_file
    if args.json_logs:
        data["json_logs"] = True
    return config.Config(**data)


def _emit(payload: Dict[str, Any], output: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _run_generate(service: ShowScribeService, args: argparse.Namespace) -> int:
    transcript = Path(args.transcript_file).read_text(encoding="utf-8")
    _emit(service.generate(transcript).to_response(), args.output)
    return 0


def _run_transcribe(service: ShowScribeService, args: argparse.Namespace) -> int:
    path = Path(args.audio_file)
    content_type, _ = mimetypes.guess_type(path.name)
    upload = MediaUpload(filename=path.name, content_type=content_type, data=path.read_bytes())
    outcome = service.pipeline.process(upload, force_sync=True)
    _emit(outcome.to_response(), args.output)
    return 0


def _serve(service: ShowScribeService, host: str, port: int) -> None:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(service), host=host, port=port, log_config=None)


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    service_factory: Optional[Callable[[config.Config], ShowScribeService]] = None,
    serve_fn: Optional[Callable[[ShowScribeService, str, int], None]] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Entry point for the CLI; returns an exit status code."""
    log = logger or _LOGGER
    service_factory = service_factory or create_service
    serve_fn = serve_fn or _serve

    args = parse_args(argv)

    try:
        cfg = _build_config(args)
    except ValidationError as exc:
        log.error("Invalid configuration: %s", exc)
        return 1
    except ValueError as exc:
        log.error("Error: %s", exc)
        return 1

    apply_log_level(cfg.log_level, log_file=cfg.log_file, json_logs=cfg.json_logs)

    try:
        service = service_factory(cfg)
        if args.command == "serve":
            serve_fn(service, args.host, args.port)
            return 0
        if args.command == "generate":
            return _run_generate(service, args)
        return _run_transcribe(service, args)
    except ShowScribeError as exc:
        log.error("%s", exc)
        return 1
    except OSError as exc:
        log.error("File error: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
