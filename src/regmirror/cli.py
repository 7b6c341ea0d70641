from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from .config import Settings, load_settings
from .errors import RegmirrorError
from .service import RegistryMirror

logger = logging.getLogger(__name__)


def _print_json(data: object) -> None:
    """Serialise ``data`` to JSON and print it to stdout."""

    print(json.dumps(data, ensure_ascii=False, indent=2))


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config)
    if args.db is not None:
        settings = settings.with_overrides(database=args.db)
    return settings


def _open_mirror(settings: Settings) -> RegistryMirror:
    return RegistryMirror.from_settings(settings)


def _run(args: argparse.Namespace, action) -> None:
    mirror = _open_mirror(args.settings)
    try:
        _print_json(action(mirror))
    finally:
        mirror.close()


def _handle_sync(args: argparse.Namespace) -> None:
    if args.reset and not args.yes:
        raise SystemExit(
            "--reset deletes every agency, title, link and snapshot; "
            "re-run with --yes to confirm"
        )
    _run(args, lambda m: m.synchronize_metadata(reset=args.reset))


def _handle_ingest(args: argparse.Namespace) -> None:
    _run(args, lambda m: m.ingest_snapshots(args.mode, titles=args.titles, limit=args.limit))


def _handle_scrape(args: argparse.Namespace) -> None:
    _run(args, lambda m: m.ingest_dates(args.title, args.dates))


def _handle_dates(args: argparse.Namespace) -> None:
    _run(args, lambda m: {"title": args.title, "dates": m.preview_dates(args.title)})


def _handle_catalog(args: argparse.Namespace) -> None:
    _run(args, lambda m: m.list_catalog())


def _handle_history(args: argparse.Namespace) -> None:
    _run(args, lambda m: m.list_history(args.title))


def _handle_dashboard(args: argparse.Namespace) -> None:
    _run(args, lambda m: m.dashboard())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regmirror",
        description="Mirror a regulatory-text registry and score its snapshots",
    )
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("--db", type=Path, help="Path to the SQLite database")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    sync = sub.add_parser("sync", help="Refresh agencies, titles, links and version dates")
    sync.add_argument("--reset", action="store_true", help="Wipe all stored data first")
    sync.add_argument("--yes", action="store_true", help="Confirm a destructive --reset")
    sync.set_defaults(func=_handle_sync)

    ingest = sub.add_parser("ingest", help="Fetch and score the newest snapshots")
    ingest.add_argument("--mode", choices=("demo", "custom"), default="demo")
    ingest.add_argument("--titles", help='Comma separated title numbers, e.g. "1, 14, 40"')
    ingest.add_argument("--limit", help="Snapshots per title (newest first)")
    ingest.set_defaults(func=_handle_ingest)

    scrape = sub.add_parser("scrape", help="Fetch specific version dates of one title")
    scrape.add_argument("title", type=int)
    scrape.add_argument("dates", nargs="+", help="Version dates (YYYY-MM-DD)")
    scrape.set_defaults(func=_handle_scrape)

    dates = sub.add_parser("dates", help="List a title's version dates from the registry")
    dates.add_argument("title", type=int)
    dates.set_defaults(func=_handle_dates)

    catalog = sub.add_parser("catalog", help="Known titles with all and loaded dates")
    catalog.set_defaults(func=_handle_catalog)

    history = sub.add_parser("history", help="Stored snapshots of a title, oldest first")
    history.add_argument("title", type=int)
    history.set_defaults(func=_handle_history)

    dashboard = sub.add_parser("dashboard", help="Agency table and per-date trend")
    dashboard.set_defaults(func=_handle_dashboard)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    try:
        args.settings = _settings(args)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else args.settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        args.func(args)
    except RegmirrorError as exc:
        logger.debug("Command failed", exc_info=True)
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":  # pragma: no cover
    main()
