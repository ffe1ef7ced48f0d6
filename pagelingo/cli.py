# pagelingo/cli.py
"""
Command line entry point.

    pagelingo translate report.pdf --provider deepseek
    pagelingo preview report.pdf
    pagelingo export-partial report.pdf
    pagelingo checkpoint-info report.pdf
    pagelingo clear-checkpoint --all
    pagelingo relay --port 8787
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from pagelingo import __app_name__, __version__
from pagelingo.config.settings import AppSettings, SUPPORTED_PROVIDERS, get_default_settings_path
from pagelingo.models.types import DocumentKey, TranslationProgress
from pagelingo.services.exceptions import (
    BackendError,
    ConfigurationError,
    PageLingoError,
    PipelineError,
)
from pagelingo.services.progress import ProgressEvents

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(verbose: bool = False, logs_dir: Optional[Path] = None):
    """Configure logging to console and file.

    Log file location: ~/.pagelingo/logs/pagelingo.log (append mode, UTF-8)

    Returns:
        tuple: (console_handler, file_handler) to keep references alive
    """
    logs_dir = logs_dir or Path.home() / ".pagelingo" / "logs"
    log_file_path = logs_dir / "pagelingo.log"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))

    file_handler = None
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    except OSError as e:
        # Console-only logging if the log file cannot be created
        print(f"[WARNING] Failed to create log file {log_file_path}: {e}", file=sys.stderr)
        file_handler = None

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)
    if file_handler:
        root_logger.addHandler(file_handler)

    # Suppress verbose logging from third-party libraries
    for name in ['httpx', 'httpcore', 'uvicorn', 'uvicorn.error', 'uvicorn.access',
                 'starlette', 'asyncio']:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug("%s %s starting, argv: %s", __app_name__, __version__, sys.argv)
    if file_handler:
        logger.debug("Log file: %s", log_file_path)

    return console_handler, file_handler


def _print_progress(progress: TranslationProgress) -> None:
    phase = progress.phase.value if progress.phase else "working"
    print(f"  [{phase}] {progress.phase_detail or progress.status} ({progress.percentage:.0%})",
          file=sys.stderr)


def _load_settings(args) -> AppSettings:
    settings_path = args.settings or get_default_settings_path()
    # Copy so command line overrides never leak into the settings cache
    settings = replace(AppSettings.load(settings_path))
    if getattr(args, "provider", None):
        settings.provider = args.provider
    if getattr(args, "batch_size", None):
        settings.batch_size = args.batch_size
    if getattr(args, "target_language", None):
        settings.target_language = args.target_language
    settings._validate()
    return settings


def _read_document(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise SystemExit(f"Cannot read {path}: {e}") from e


def _document_key(args, data: bytes, settings: AppSettings) -> DocumentKey:
    from pagelingo.services.translation_service import document_id_from_bytes

    document_id = args.document_id or document_id_from_bytes(data)
    return DocumentKey(document_id=document_id, provider=settings.provider)


def _open_store(settings: AppSettings):
    from pagelingo.storage.checkpoint_db import CheckpointDB

    return CheckpointDB(settings.get_checkpoint_db_path(), ttl_seconds=settings.checkpoint_ttl_seconds)


def _report_failure(error: PageLingoError, input_path: Optional[Path] = None) -> None:
    print(f"Error: {error}", file=sys.stderr)
    cause = error.__cause__
    if isinstance(cause, BackendError) and cause.hint:
        print(f"Hint: {cause.hint}", file=sys.stderr)
    if isinstance(error, PipelineError) and error.completed and input_path is not None:
        print(
            f"{error.progress_display} pages are saved. Run the same command again to resume, "
            f"or `pagelingo export-partial {input_path}` to export them.",
            file=sys.stderr,
        )


async def _run_translation(args, preview: bool) -> int:
    from pagelingo.services.backends import create_backend
    from pagelingo.services.translation_service import TranslationService, generate_output_path

    settings = _load_settings(args)
    data = _read_document(args.input)
    key = _document_key(args, data, settings)

    events = ProgressEvents()
    events.subscribe(_print_progress)

    store = _open_store(settings)
    try:
        async with create_backend(settings.provider, settings) as backend:
            service = TranslationService(backend, store, settings=settings, events=events)
            if preview:
                result = await service.preview(data, key, file_name=args.input.name)
                print(f"--- Page {result.page_number} (original) ---")
                print(result.original_text)
                print(f"--- Page {result.page_number} (translated) ---")
                print(result.translated_text)
                return 0

            document = await service.translate_document(data, key, file_name=args.input.name)
    finally:
        store.close()

    output_path = args.output or generate_output_path(args.input, settings)
    output_path.write_bytes(document.pdf)
    print(f"Saved: {output_path}")
    if args.text_output:
        args.text_output.write_text(document.result.full_text, encoding="utf-8")
        print(f"Saved text: {args.text_output}")
    return 0


def cmd_translate(args) -> int:
    try:
        return asyncio.run(_run_translation(args, preview=False))
    except PageLingoError as e:
        _report_failure(e, args.input)
        return 1


def cmd_preview(args) -> int:
    try:
        return asyncio.run(_run_translation(args, preview=True))
    except PageLingoError as e:
        _report_failure(e, args.input)
        return 1


def cmd_export_partial(args) -> int:
    from pagelingo.services.translation_service import TranslationService, generate_output_path

    settings = _load_settings(args)
    data = _read_document(args.input)
    key = _document_key(args, data, settings)

    try:
        with _open_store(settings) as store:
            output = TranslationService(None, store, settings=settings).export_partial(data, key)
    except PageLingoError as e:
        _report_failure(e)
        return 1

    if output is None:
        print(f"No saved pages for {args.input.name} ({settings.provider})", file=sys.stderr)
        return 1

    output_path = args.output or generate_output_path(args.input, settings, suffix="_partial")
    output_path.write_bytes(output)
    print(f"Saved partial result: {output_path}")
    return 0


def cmd_checkpoint_info(args) -> int:
    settings = _load_settings(args)
    data = _read_document(args.input)
    key = _document_key(args, data, settings)

    with _open_store(settings) as store:
        info = store.info(key)
    if info is None:
        print(f"No checkpoint for {args.input.name} ({settings.provider})")
        return 1
    print(f"{info.file_name}: {info.page_count} pages translated with {info.provider}, saved {info.age_display}")
    return 0


def cmd_clear_checkpoint(args) -> int:
    settings = _load_settings(args)
    with _open_store(settings) as store:
        if args.all:
            removed = store.clear()
        elif args.input is not None:
            data = _read_document(args.input)
            removed = store.clear(_document_key(args, data, settings))
        else:
            print("Specify a PDF or --all", file=sys.stderr)
            return 2
    print(f"Removed {removed} checkpoint(s)")
    return 0


def cmd_relay(args) -> int:
    import uvicorn

    from pagelingo.relay.app import create_app

    uvicorn.run(create_app(args.upstream_url), host=args.host, port=args.port, log_level="info")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagelingo",
        description="Translate PDF documents page by page while keeping their layout.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")
    parser.add_argument("--settings", type=Path, default=None, help="Settings base path (config/settings.json)")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--provider", choices=SUPPORTED_PROVIDERS, default=None)
    common.add_argument("--document-id", default=None,
                        help="Checkpoint id for the document (default: content hash)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("translate", "Translate the whole document"),
                            ("preview", "Translate the first page only")):
        sub = subparsers.add_parser(name, parents=[common], help=help_text)
        sub.add_argument("input", type=Path)
        sub.add_argument("--target-language", default=None)
        sub.add_argument("--batch-size", type=int, default=None)
        if name == "translate":
            sub.add_argument("-o", "--output", type=Path, default=None)
            sub.add_argument("--text-output", type=Path, default=None,
                             help="Also write the translated text (pages separated by blank lines)")
            sub.set_defaults(func=cmd_translate)
        else:
            sub.set_defaults(func=cmd_preview)

    sub = subparsers.add_parser("export-partial", parents=[common], help="Export the pages saved so far")
    sub.add_argument("input", type=Path)
    sub.add_argument("-o", "--output", type=Path, default=None)
    sub.set_defaults(func=cmd_export_partial)

    sub = subparsers.add_parser("checkpoint-info", parents=[common], help="Show the saved progress")
    sub.add_argument("input", type=Path)
    sub.set_defaults(func=cmd_checkpoint_info)

    sub = subparsers.add_parser("clear-checkpoint", parents=[common], help="Discard saved progress")
    sub.add_argument("input", type=Path, nargs="?", default=None)
    sub.add_argument("--all", action="store_true", help="Discard every checkpoint")
    sub.set_defaults(func=cmd_clear_checkpoint)

    sub = subparsers.add_parser("relay", help="Run the translation relay")
    sub.add_argument("--host", default="127.0.0.1")
    sub.add_argument("--port", type=int, default=8787)
    sub.add_argument("--upstream-url", default=None)
    sub.set_defaults(func=cmd_relay)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)
    try:
        return args.func(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
