"""
Command line entry point.

    wallet-reputation <address> [--tokens T1,T2] [--force-refresh] [--json]

Exit codes: 0 success, 1 analysis failed, 2 invalid input.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Callable, List, Optional

from . import __version__
from .analyzer import WalletAnalyzer
from .config import Settings, get_settings
from .exceptions import AppError, ValidationError, format_error_response
from .models import AnalysisResult
from .validators import parse_token_input

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2


class GracefulShutdown:
    def __init__(self):
        self.shutdown_callbacks: List[Callable] = []
        self._shutting_down = False

    def register_callback(self, callback: Callable) -> None:
        self.shutdown_callbacks.append(callback)

    async def trigger_shutdown(self) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True

        for callback in reversed(self.shutdown_callbacks):
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback()
                else:
                    callback()
            except Exception as e:
                logging.error(f"Shutdown callback error: {e}")


class ApplicationLogger:
    def __init__(self, settings: Settings, verbose: bool = False):
        self.settings = settings
        self.verbose = verbose
        self.logger = None

    def log_level(self) -> int:
        """DEBUG when -v or ``Settings.debug`` is set, else the configured level."""
        if self.verbose or self.settings.debug:
            return logging.DEBUG
        return getattr(logging, self.settings.logging.level.value)

    def setup(self) -> logging.Logger:
        cfg = self.settings.logging

        root_logger = logging.getLogger()
        level = self.log_level()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        file_formatter = logging.Formatter(cfg.format, datefmt=cfg.date_format)
        console_formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%H:%M:%S"
        )

        if cfg.file_enabled:
            cfg.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cfg.file_path,
                maxBytes=cfg.file_max_bytes,
                backupCount=cfg.file_backup_count,
                encoding="utf-8"
            )
            file_handler.setFormatter(file_formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)

        # stdout carries the report, logs go to stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

        logging.getLogger("aiohttp").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

        self.logger = logging.getLogger("main")
        return self.logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wallet-reputation",
        description="Score the trustworthiness of an Ethereum or Solana wallet.",
    )
    parser.add_argument("address", help="Wallet address to analyze")
    parser.add_argument(
        "--tokens",
        action="append",
        default=[],
        help="Token addresses to analyze instead of auto-discovery (comma separated, repeatable)",
    )
    parser.add_argument("--force-refresh", action="store_true", help="Ignore cached results")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def format_report(result: AnalysisResult) -> str:
    summary = result.token_launch_summary
    lines = [
        f"Wallet:      {result.address} ({result.blockchain})",
        f"Score:       {result.score}/100",
        f"Confidence:  {result.confidence.level.value} - {result.confidence.reason}",
        f"Tokens:      {summary.total_launched} launched, {summary.succeeded} succeeded, "
        f"{summary.rugged} rugged, {summary.unknown} unknown",
        f"Providers:   {', '.join(result.metadata.providers_used) or 'none'}",
        "",
        "Breakdown:",
        f"  wallet age     {result.breakdown.wallet_age_score}",
        f"  activity       {result.breakdown.activity_score}",
        f"  token outcome  {result.breakdown.token_outcome_score}",
        f"  heuristics     {result.breakdown.heuristics_score}",
        "",
        "Notes:",
    ]
    lines.extend(f"  - {note}" for note in result.notes)
    return "\n".join(lines)


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logger = ApplicationLogger(settings, verbose=args.verbose).setup()
    logger.info("%s %s starting", settings.app_name, __version__)
    logger.debug("Settings: %s", settings.mask_secrets())

    tokens: List[str] = []
    for raw in args.tokens:
        tokens.extend(parse_token_input(raw))

    shutdown = GracefulShutdown()
    analyzer = WalletAnalyzer(settings=settings)
    shutdown.register_callback(analyzer.close)

    task = asyncio.ensure_future(
        analyzer.analyze(args.address, token_addresses=tokens, force_refresh=args.force_refresh)
    )

    loop = asyncio.get_running_loop()
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
            handled.append(sig)
        except (NotImplementedError, RuntimeError):
            pass

    exit_code = EXIT_OK
    try:
        result = await task
        print(json.dumps(result.to_dict(), indent=2) if args.json else format_report(result))
    except asyncio.CancelledError:
        logger.info("Analysis cancelled")
        exit_code = EXIT_FAILED
    except ValidationError as e:
        print(json.dumps(format_error_response(e), indent=2) if args.json else f"Invalid input: {e.message}")
        exit_code = EXIT_INVALID_INPUT
    except AppError as e:
        logger.error("Analysis failed: %s", e)
        if args.json:
            print(json.dumps(format_error_response(e), indent=2))
        exit_code = EXIT_FAILED
    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        exit_code = EXIT_FAILED
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        await shutdown.trigger_shutdown()

    return exit_code


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))

    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(EXIT_FAILED)


if __name__ == "__main__":
    run()
