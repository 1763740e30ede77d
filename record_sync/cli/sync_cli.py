"""
Command-line interface for record-sync.

Usage:
    record-sync serve [--run-now]
    record-sync run-once [--input <file_path>] [--chunk-size <n>]
    record-sync logs --level <LEVEL>
    record-sync init-db
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from record_sync.api import create_app
from record_sync.batch import BatchLoader, BatchScheduler
from record_sync.config import Settings, get_settings
from record_sync.core.errors import StoreConnectFailure
from record_sync.observability.log_sink import LogSink, format_entry
from record_sync.observability.logger import LOG_LEVELS, configure_logging, get_logger
from record_sync.warehouse.connection import DatabaseConnectionPool
from record_sync.warehouse.lease import RunLease
from record_sync.warehouse.record_store import PostgresRecordStore
from record_sync.warehouse.schema_mgmt import SchemaManager

logger = get_logger(__name__)


def load_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, with command-line overrides applied."""
    overrides = {}
    if getattr(args, "db_url", None):
        overrides["db_url"] = args.db_url
    if getattr(args, "log_dir", None):
        overrides["log_dir"] = args.log_dir
    settings = Settings(**overrides) if overrides else get_settings()
    configure_logging(settings.log_level, settings.log_format)
    return settings


def build_sink(settings: Settings, console: bool = True) -> LogSink:
    return LogSink(settings.log_dir, console=console, console_format=settings.log_format)


def build_pool(settings: Settings) -> DatabaseConnectionPool:
    return DatabaseConnectionPool(
        conninfo=settings.db_url,
        min_size=settings.db_pool_min_size,
        # one connection per in-flight reconcile, plus one for the lease
        max_size=max(settings.db_pool_max_size, settings.chunk_size + 1),
        timeout=settings.db_connect_timeout,
        statement_timeout_ms=settings.statement_timeout_ms,
    )


def build_loader(settings: Settings, pool: DatabaseConnectionPool, sink: LogSink) -> BatchLoader:
    return BatchLoader(
        store=PostgresRecordStore(pool),
        sink=sink,
        chunk_size=settings.chunk_size,
        lease=RunLease(pool, ttl_seconds=settings.lease_ttl_seconds),
    )


def connect_store(pool: DatabaseConnectionPool, sink: LogSink) -> bool:
    """
    Open the pool and create the tables, logging the outcome to the sink.

    Returns:
        True when the store is ready
    """
    try:
        pool.open()
        SchemaManager(pool).ensure_schema()
    except StoreConnectFailure as e:
        sink.error(f"Database connection error: {e}")
        return False
    sink.info("Database connected successfully.")
    return True


def serve_command(args: argparse.Namespace) -> int:
    """
    Start the scheduler and the dashboard.

    Args:
        args: Command-line arguments
    """
    settings = load_settings(args)
    sink = build_sink(settings)
    pool = build_pool(settings)

    if not connect_store(pool, sink) and settings.store_connect_fatal:
        logger.error("Store unavailable and STORE_CONNECT_FATAL is set; exiting")
        return 1

    loader = build_loader(settings, pool, sink)
    scheduler = BatchScheduler(
        loader,
        source=settings.data_file,
        sink=sink,
        cron=settings.sync_schedule,
        timezone=settings.sync_timezone,
    )
    if args.run_now:
        scheduler.run_now()

    app = create_app(
        sink,
        access_log_path=Path(settings.log_dir) / "access.log",
        scheduler=scheduler,
    )

    sink.info(f"Server is running on port {settings.port}")
    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=LOG_LEVELS.get(settings.log_level.upper(), logging.INFO),
        )
    finally:
        pool.close()
    return 0


def run_once_command(args: argparse.Namespace) -> int:
    """
    Run the batch loader once and report the outcome.

    Args:
        args: Command-line arguments
    """
    settings = load_settings(args)
    if args.chunk_size is not None:
        settings = settings.model_copy(update={"chunk_size": args.chunk_size})
    sink = build_sink(settings)
    pool = build_pool(settings)
    source = args.input or settings.data_file

    try:
        summary = build_loader(settings, pool, sink).load_and_reconcile(source)
    finally:
        pool.close()

    if summary is None:
        logger.error(f"Sync of {source} did not complete; see {Path(settings.log_dir) / 'error.log'}")
        return 1

    logger.info("=" * 60)
    logger.info("SYNC COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Records in batch: {summary.total_records}")
    logger.info(f"Chunks processed: {summary.chunks}")
    logger.info(f"Created: {summary.created}")
    logger.info(f"Updated: {summary.updated}")
    logger.info(f"Failed: {summary.failed}")
    logger.info("=" * 60)
    return 0 if summary.failed == 0 else 2


def logs_command(args: argparse.Namespace) -> int:
    """
    Print the entries logged at one level, oldest first.

    Args:
        args: Command-line arguments
    """
    settings = load_settings(args)
    sink = build_sink(settings, console=False)
    try:
        events = sink.query(args.level)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1
    for event in events:
        print(format_entry(event))
    return 0


def init_db_command(args: argparse.Namespace) -> int:
    """
    Create the store tables.

    Args:
        args: Command-line arguments
    """
    settings = load_settings(args)
    pool = build_pool(settings)
    try:
        pool.open()
        SchemaManager(pool).ensure_schema()
    except StoreConnectFailure as e:
        logger.error(f"Could not initialize database: {e}")
        return 1
    finally:
        pool.close()
    logger.info("Tables 'entries' and 'sync_leases' are ready")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="record-sync",
        description="Scheduled JSON batch sync into PostgreSQL with leveled logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the dashboard and run the sync at 00:00 and 12:00
  record-sync serve

  # Same, plus one sync right away
  record-sync serve --run-now

  # Sync a specific file once, 25 records per chunk
  record-sync run-once --input data/MOCK_DATA.json --chunk-size 25

  # Show every failed record
  record-sync logs --level ERROR
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--db-url", help="Database URI (default: env DB_URL)")
    common.add_argument("--log-dir", help="Log directory (default: env LOG_DIR or ./logs)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Run scheduler and dashboard")
    serve_parser.add_argument(
        "--run-now",
        action="store_true",
        help="Trigger one sync as soon as the scheduler starts"
    )

    run_parser = subparsers.add_parser("run-once", parents=[common], help="Sync a batch file once")
    run_parser.add_argument(
        "--input",
        help="Path to the JSON batch file (default: env DATA_FILE)"
    )
    run_parser.add_argument(
        "--chunk-size",
        type=int,
        help="Records per chunk (default: env CHUNK_SIZE or 10)"
    )

    logs_parser = subparsers.add_parser("logs", parents=[common], help="Print log entries for a level")
    logs_parser.add_argument(
        "--level",
        default="INFO",
        help="Level to show: INFO, WARN, ERROR, SUCCESS (default: INFO)"
    )

    subparsers.add_parser("init-db", parents=[common], help="Create the database tables")

    return parser


COMMANDS = {
    "serve": serve_command,
    "run-once": run_once_command,
    "logs": logs_command,
    "init-db": init_db_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "run-once" and args.chunk_size is not None and args.chunk_size <= 0:
        parser.error("--chunk-size must be a positive integer")

    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
