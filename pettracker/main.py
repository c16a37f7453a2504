"""
Pet tracker sync engine command line.

Usage:
    pettracker status                  # Pending and failed operation counts
    pettracker drain                   # Push queued operations once
    pettracker pull                    # Reconcile remote pages into the local store
    pettracker reset-failed            # Return dead-lettered operations to the queue
    pettracker run                     # Sync periodically until interrupted
    pettracker configure --proxy-url URL --credential TOKEN --data-source pets=ID

Settings are read from the database given with ``--db``; ``--env`` reads
them from PETTRACKER_* environment variables instead.
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from pettracker.app.sync_application import SyncApplication
from pettracker.app.sync_service import SyncService
from pettracker.config.app_config import AppConfig
from pettracker.config.settings_store import SettingsStore
from pettracker.errors import SyncError
from pettracker.models.records import COLLECTION_MODELS

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pettracker", description="Sync pet tracker records with the remote workspace")
    parser.add_argument("--db", default=SettingsStore.DEFAULT_DB_PATH, help="SQLite path for records, queue and settings")
    parser.add_argument("--env", action="store_true", help="Read configuration from PETTRACKER_* environment variables")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("status", help="Show pending and failed operation counts")
    commands.add_parser("drain", help="Push queued operations once")
    commands.add_parser("pull", help="Reconcile remote pages into the local store")
    commands.add_parser("reset-failed", help="Return failed operations to the queue")

    run = commands.add_parser("run", help="Sync periodically until interrupted")
    run.add_argument("--interval", type=float, default=None, help="Seconds between sync cycles")

    configure = commands.add_parser("configure", help="Store proxy and remote settings")
    configure.add_argument("--proxy-url")
    configure.add_argument("--proxy-token")
    configure.add_argument("--credential", help="Remote API credential")
    configure.add_argument(
        "--data-source", action="append", default=[], metavar="COLLECTION=ID",
        help="Remote data source for a collection (repeatable)"
    )
    return parser.parse_args(argv)


def build_application(args: argparse.Namespace) -> SyncApplication:
    if args.env:
        return SyncApplication(AppConfig.from_env())
    return SyncApplication.from_settings(args.db)


def configure(args: argparse.Namespace) -> int:
    updates = {}
    if args.proxy_url is not None:
        updates['proxy_url'] = args.proxy_url
    if args.proxy_token is not None:
        updates['proxy_token'] = args.proxy_token
    if args.credential is not None:
        updates['remote_credential'] = args.credential

    settings = SettingsStore(args.db)
    try:
        if args.data_source:
            data_sources = dict(settings.get()['data_sources'])
            for item in args.data_source:
                collection, sep, data_source_id = item.partition('=')
                if not sep or collection not in COLLECTION_MODELS:
                    print(f"Invalid data source '{item}', expected one of {', '.join(COLLECTION_MODELS)}=ID")
                    return 2
                data_sources[collection] = data_source_id
            updates['data_sources'] = data_sources
        settings.set(**updates)
        print(f"Settings saved to {args.db} (connected: {settings.is_connected()})")
    finally:
        settings.close()
    return 0


def run_service(app: SyncApplication, interval: Optional[float]) -> int:
    service = SyncService(app, interval=interval)
    stopped = threading.Event()

    def _signal_handler(sig, frame):
        logger.info("Shutdown signal received. Exiting gracefully...")
        stopped.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)
    service.start()
    try:
        while not stopped.wait(timeout=1.0):
            if not service.is_running:
                logger.error("Sync service thread died unexpectedly")
                return 1
    finally:
        service.stop()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the sync engine command line.

    Returns:
        Process exit code
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if args.command == "configure":
        return configure(args)

    app = build_application(args)
    try:
        if args.command == "status":
            status = app.status()
            print(f"Configured: {status['configured']}")
            print(f"Pending operations: {status['pending']}")
            print(f"Failed operations: {status['failed']}")
            print(f"Last sync: {status['last_sync'] or 'never'}")
        elif args.command == "drain":
            result = app.processor.drain()
            print(f"Sent {result.succeeded}, failed {result.failed}, skipped {result.skipped}")
            return 0 if result.failed == 0 else 1
        elif args.command == "pull":
            result = app.processor.pull()
            print(f"Inserted {result.inserted}, updated {result.updated}, deleted {result.deleted}")
        elif args.command == "reset-failed":
            print(f"Reset {app.queue.reset_failed()} failed operations")
        elif args.command == "run":
            return run_service(app, args.interval)
    except SyncError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        app.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
