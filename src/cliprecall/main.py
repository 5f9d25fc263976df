#!/usr/bin/env python3

import argparse
import dataclasses
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from cliprecall.config import STORAGE_BACKENDS, EngineConfig
from cliprecall.engine import ClipboardEngine
from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.services.paste_dispatcher import PasteFormat

logger = logging.getLogger(__name__)


def _print_items(items: List[ClipboardItem]) -> None:
    if not items:
        print("No clipboard items.")
        return
    for item in items:
        pin = "*" if item.is_pinned else " "
        print(f"{pin} {item.id}  {item.content_type.value:<5}  {item.formatted_size:>9}  "
              f"{item.display_title}  ({item.display_subtitle()})")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cliprecall",
        description="cliprecall - clipboard history engine"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    parser.add_argument(
        "--storage",
        choices=STORAGE_BACKENDS,
        default=None,
        help="History storage backend (default: CLIPRECALL_STORAGE or file)"
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for the history index and blobs (default: ~/.cliprecall)"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Monitor the clipboard in the foreground")
    run.add_argument(
        "-i", "--poll-interval",
        type=float,
        default=None,
        help="Clipboard polling interval in seconds (default: 0.5)"
    )

    listing = commands.add_parser("list", help="Show the history, newest first")
    listing.add_argument("-n", "--limit", type=int, default=20)

    search = commands.add_parser("search", help="Search the history")
    search.add_argument("query")
    search.add_argument(
        "-t", "--type",
        choices=[content_type.value for content_type in ContentType],
        default=None,
    )

    pin = commands.add_parser("pin", help="Toggle the pin on an item")
    pin.add_argument("item_id")

    remove = commands.add_parser("remove", help="Delete items")
    remove.add_argument("item_ids", nargs="+")

    commands.add_parser("clear", help="Delete every unpinned item")

    copy = commands.add_parser("copy", help="Put an item back on the clipboard")
    copy.add_argument("item_id")
    copy.add_argument("--plain", action="store_true", help="Copy as plain text")

    commands.add_parser("settings", help="Print the effective settings")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig.from_env()
    changes = {}
    if args.storage:
        changes["storage"] = args.storage
    if args.data_dir:
        changes["data_dir"] = args.data_dir
    if getattr(args, "poll_interval", None):
        changes["poll_interval"] = args.poll_interval
    return dataclasses.replace(config, **changes) if changes else config


def run_command(engine: ClipboardEngine, args: argparse.Namespace) -> int:
    if args.command == "run":
        def signal_handler(signum, frame):
            engine.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
        print("cliprecall running. Press Ctrl+C to stop")
        engine.run_forever()
        return 0

    engine.open()

    if args.command == "list":
        _print_items(engine.all_items()[:max(0, args.limit)])
    elif args.command == "search":
        _print_items(engine.search(args.query, args.type))
    elif args.command == "pin":
        item = engine.toggle_pin(args.item_id)
        if item is None:
            print(f"No item {args.item_id}")
            return 1
        print(f"{item.id} {'pinned' if item.is_pinned else 'unpinned'}")
    elif args.command == "remove":
        removed = engine.remove(*args.item_ids)
        print(f"Removed {len(removed)} item(s)")
    elif args.command == "clear":
        removed = engine.clear()
        print(f"Cleared {len(removed)} item(s)")
    elif args.command == "copy":
        mode = PasteFormat.PLAIN_TEXT if args.plain else PasteFormat.ORIGINAL
        result = engine.copy(args.item_id, mode)
        if not result.ok:
            print(f"Copy failed: {result.error}")
            return 1
        print(f"Copied {result.item_id}")
    elif args.command == "settings":
        print(json.dumps(engine.settings.current().model_dump(mode="json"), indent=2))

    if not engine.flush():
        print("Warning: history could not be saved")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    if args.command == "run" and not args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        engine = ClipboardEngine(build_config(args))
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 2

    try:
        return run_command(engine, args)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        engine.close()


if __name__ == "__main__":
    sys.exit(main())
