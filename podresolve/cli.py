#!/usr/bin/env python3
"""Command-line interface for resolving podcast player screenshots."""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from podresolve.catalog_client import ITunesCatalogClient
from podresolve.config import load_config
from podresolve.exceptions import NoTextDetectedError, OcrError
from podresolve.ocr_engine import detect_text, initialize_reader
from podresolve.pipeline import process_screenshots
from podresolve.resolver import CatalogResolver

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_table(results) -> Table:
    table = Table(show_header=True, header_style="bold yellow")
    table.add_column("Screenshot", style="cyan")
    table.add_column("Podcast", style="green")
    table.add_column("Episode", style="green")
    table.add_column("Timestamp")
    table.add_column("Confidence", justify="right")
    table.add_column("Method", style="dim")

    for name, result in results:
        if isinstance(result, NoTextDetectedError):
            table.add_row(name, "[red]no text detected[/red]", "", "", "", "")
        elif isinstance(result, OcrError):
            table.add_row(name, f"[red]OCR error: {result}[/red]", "", "", "", "")
        elif result.resolution.found:
            res = result.resolution
            table.add_row(name, res.podcast_title, res.episode_title or "", result.timestamp or "-",
                          f"{res.confidence:.2f}", res.method)
        else:
            table.add_row(name, "[yellow]not found[/yellow]", "", result.timestamp or "-", "0.00", "")
    return table


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Identify podcast, episode and timestamp from player screenshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  podresolve screenshot.png
  podresolve shots/*.png --workers 2 --log-level debug
  podresolve screenshot.png --config podresolve.json --ocr-device cpu
        """
    )
    parser.add_argument("images", nargs="+", help="Screenshot image files")
    parser.add_argument("--config", type=str, default=None, help="Path to JSON configuration file")
    parser.add_argument("--workers", type=int, default=2, help="Screenshots resolved concurrently (default: 2)")
    parser.add_argument("--ocr-device", type=str, default="auto", choices=["auto", "gpu", "cpu"], help="Force OCR device usage (default: auto)")
    parser.add_argument("--log-level", type=str, default="warning", choices=["debug", "info", "warning", "error"], help="Logging level (default: warning)")

    args = parser.parse_args()
    _setup_logging(args.log_level)
    console = Console()

    try:
        config = load_config(Path(args.config).expanduser() if args.config else None)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    images = {}
    for image in args.images:
        path = Path(image).expanduser()
        if not path.exists():
            console.print(f"[red]Error:[/red] Screenshot not found: {path}")
            return 1
        images[str(path)] = path.read_bytes()

    ocr_gpu = {"auto": None, "gpu": True, "cpu": False}[args.ocr_device]
    try:
        initialize_reader(gpu=ocr_gpu)
    except OcrError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    resolver = CatalogResolver(ITunesCatalogClient(config.catalog), config.resolver)

    try:
        results = process_screenshots(images, resolver, config, ocr=detect_text, max_workers=args.workers)
    except KeyboardInterrupt:
        return 130

    console.print(_build_table(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
