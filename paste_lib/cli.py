"""Maintenance commands for a paste store.

    pastestore [--config PATH] [--log-level LEVEL] purge [--batch N] [--force]
    pastestore [--config PATH] [--log-level LEVEL] check

`purge` removes expired pastes, honouring the purge limiter unless forced.
`check` opens the configured backend, which applies any pending schema
upgrade, and reports whether the store is usable.
"""
from __future__ import annotations
import argparse
import logging
import sys
from typing import Iterable, Optional

from paste_lib.config import ConfigError, load_config
from paste_lib.logging_config import configure_logging
from paste_lib.model import Model, StorageFailureError

logger = logging.getLogger(__name__)


def get_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pastestore", description="Maintain a paste store")
    p.add_argument("--config", help="Path to the YAML configuration file")
    p.add_argument("--log-level", help="Override the configured log level")
    sub = p.add_subparsers(dest="command", required=True)

    purge = sub.add_parser("purge", help="Delete expired pastes")
    purge.add_argument("--batch", type=int, help="Maximum number of pastes to delete")
    purge.add_argument("--force", action="store_true", help="Ignore the purge limiter")

    sub.add_parser("check", help="Open the paste store and apply schema upgrades")
    return p


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = get_parser().parse_args(list(argv) if argv is not None else None)

    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(args.log_level or cfg.log_level)

    try:
        model = Model(cfg)
        if args.command == "purge":
            if args.force:
                removed = model.purge(args.batch)
            else:
                removed = model.maybe_purge(args.batch)
            print(f"Purged {removed} expired paste(s)")
        else:
            # any round trip proves the backend is reachable
            model.get_paste().exists()
            print(f"Paste store '{cfg.model}' is ready")
    except StorageFailureError as exc:
        logger.debug("Storage failure", exc_info=True)
        print(f"Error: {exc.message}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
