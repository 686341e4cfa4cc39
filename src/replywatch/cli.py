"""Command-line interface for replywatch.

Provides the main entry point for running a completion episode,
starting the HTTP surface, or exercising individual components.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="replywatch",
        description="Detect when a GUI assistant has finished answering",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/replywatch.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Deliver a prompt and wait for the answer")
    run_parser.add_argument("prompt", type=str, help="Prompt text to deliver")
    run_parser.add_argument("--model", type=str, default=None, help="Model to select first")
    run_parser.add_argument("--app", type=str, default=None, help="Target application name")
    run_parser.add_argument("--strategy", type=str, default=None, help="Completion strategy")

    watch_parser = subparsers.add_parser(
        "watch", help="Wait for an answer to a prompt you delivered yourself"
    )
    watch_parser.add_argument("--strategy", type=str, default=None, help="Completion strategy")
    watch_parser.add_argument(
        "--since", type=float, default=0.0,
        help="Treat the prompt as submitted this many seconds ago",
    )

    status_parser = subparsers.add_parser("status", help="Check external dependencies")
    status_parser.add_argument("--strategy", type=str, default=None, help="Completion strategy")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP status/submission server")
    serve_parser.add_argument(
        "--forward-url", type=str, default=None,
        help="POST every new response file to this URL",
    )

    subparsers.add_parser("capture-test", help="Capture the screen once and print the file path")

    ocr_parser = subparsers.add_parser("ocr", help="Extract response text from an image")
    ocr_parser.add_argument("image", type=Path, help="Image file to read")

    subparsers.add_parser("purge", help="Delete stale response files and captures")

    return parser.parse_args(argv)


def _install_cancel_handler(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers
            pass


async def _run_episode(settings, args, prompt: str | None) -> int:
    """Run one episode and print its outcome."""
    from replywatch.completion.orchestrator import CompletionOrchestrator
    from replywatch.domain.models import EpisodeStatus

    orchestrator = CompletionOrchestrator.from_settings(settings, strategy=args.strategy)
    cancel = asyncio.Event()
    _install_cancel_handler(cancel)

    submitted_at = None
    if prompt is None:
        submitted_at = time.time() - args.since

    outcome = await orchestrator.run(
        prompt=prompt,
        model=getattr(args, "model", None),
        target_app=getattr(args, "app", None),
        cancel=cancel,
        submitted_at=submitted_at,
    )
    print(outcome.message)
    return 0 if outcome.status is EpisodeStatus.SUCCESS else 1


async def _status(settings, args) -> int:
    from replywatch.completion.orchestrator import CompletionOrchestrator

    orchestrator = CompletionOrchestrator.from_settings(settings, strategy=args.strategy)
    checks = await orchestrator.status()
    print(f"Strategy: {orchestrator.strategy.name}")
    print(f"Target:   {orchestrator.session.target}")
    print()
    for check in checks:
        mark = "ok " if check.available else "-- "
        print(f"  {mark} {check.name}: {check.detail}")
    return 0 if checks[0].available else 1


async def _capture_test(settings) -> int:
    """Capture a single frame with the configured backend."""
    from replywatch.capture import create_capture_source

    capture = create_capture_source(settings.screen, settings.storage.screenshots_path)
    async with capture:
        frame = await capture.capture_frame()
    print(f"Saved {capture.name} capture to {frame.path}")
    return 0


async def _ocr(settings, image: Path) -> int:
    from replywatch.errors import ExtractionError
    from replywatch.extract.extractor import create_extractor

    extractor = create_extractor(settings.extraction, settings.vision_api_key())
    try:
        text = await extractor.extract(image)
    except ExtractionError as e:
        print(f"Extraction failed: {e}", file=sys.stderr)
        return 1
    print(text)
    return 0


def _purge(settings) -> int:
    from replywatch.completion.registry import create_strategy

    for name in ("file", "screen"):
        removed = create_strategy(name, settings).housekeeping()
        print(f"{name}: removed {removed} stale files")
    return 0


def _serve(settings, args) -> int:
    from replywatch.api.server import create_app, serve
    from replywatch.completion.forwarder import ResponseForwarder
    from replywatch.completion.orchestrator import CompletionOrchestrator
    from replywatch.watcher.files import FileSystemWatcher

    orchestrator = CompletionOrchestrator.from_settings(settings)
    forwarder = None
    if args.forward_url:
        forwarder = ResponseForwarder(
            FileSystemWatcher(
                settings.storage.responses_path,
                extensions=settings.file_watch.extensions,
                recursive=settings.file_watch.recursive,
            ),
            orchestrator.session,
            _webhook_sender(args.forward_url),
            poll_interval=settings.file_watch.poll_interval,
            settle_delay=settings.file_watch.stabilization_delay,
            max_message_length=settings.orchestrator.max_message_length,
        )
    app = create_app(orchestrator, forwarder)
    serve(app, host=settings.api.host, port=settings.api.port)
    return 0


def _webhook_sender(url: str):
    import httpx

    async def send(target, text: str) -> None:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.post(url, json={"target": target, "text": text})
            resp.raise_for_status()

    return send


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the replywatch CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from replywatch.config.settings import load_settings
    from replywatch.errors import AutomationFailure, ConfigurationError
    from replywatch.utils.logging import setup_logging

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    try:
        settings.storage.ensure_dirs()

        if args.command == "run":
            logger.info("Running episode for prompt (%d chars)", len(args.prompt))
            code = asyncio.run(_run_episode(settings, args, args.prompt))

        elif args.command == "watch":
            logger.info("Watching for a response")
            code = asyncio.run(_run_episode(settings, args, None))

        elif args.command == "status":
            code = asyncio.run(_status(settings, args))

        elif args.command == "serve":
            logger.info("Starting API server on %s:%d", settings.api.host, settings.api.port)
            code = _serve(settings, args)

        elif args.command == "capture-test":
            logger.info("Running capture test")
            code = asyncio.run(_capture_test(settings))

        elif args.command == "ocr":
            code = asyncio.run(_ocr(settings, args.image))

        elif args.command == "purge":
            code = _purge(settings)

        else:
            code = 2
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        code = 2
    except AutomationFailure as e:
        print(f"Automation failed: {e}", file=sys.stderr)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
