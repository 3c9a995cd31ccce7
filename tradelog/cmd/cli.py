import os
import time
import json
import argparse
import sys
from tradelog.config.settings import settings
from tradelog.config.logging import logger, setup_logging
from tradelog.core.exceptions import AppError
from tradelog.services.analytics import AnalyticsService
from tradelog.services.report_formatter import ReportFormatter
from tradelog.services.syncer import SyncService

def _token(args) -> str:
    token = args.token or os.environ.get("TRADELOG_ACCESS_TOKEN")
    if not token:
        logger.error("An access token is required (--token or TRADELOG_ACCESS_TOKEN).")
        sys.exit(2)
    return token

def _repository():
    from tradelog.infrastructure.supabase.client import SupabaseTradeRepository
    return SupabaseTradeRepository()

def run_sync(args) -> int:
    summary = SyncService().run(_token(args))
    print(ReportFormatter.format_sync_toast(summary.to_dict()))
    return 0 if summary.success else 1

def run_sync_loop(args):
    """Long-running sync loop (for Docker)"""
    token = _token(args)
    service = SyncService()
    interval = args.interval or (settings.SYNC_INTERVAL_SECONDS if settings else 3600)

    logger.info(f"Starting sync loop. Interval: {interval} seconds")

    while True:
        try:
            service.run(token)
        except Exception as e:
            logger.error(f"Error during sync cycle: {e}")

        logger.info(f"Sleeping for {interval} seconds...")
        time.sleep(interval)

def run_stats(args) -> int:
    repository = _repository()
    owner_id = repository.authenticate(_token(args))
    trades = repository.list_trades(owner_id)
    print(ReportFormatter.format_stats_report(AnalyticsService.calculate_stats(trades)))
    return 0

def run_history(args) -> int:
    repository = _repository()
    owner_id = repository.authenticate(_token(args))
    trades = repository.list_trades(owner_id)
    print(ReportFormatter.format_history(trades, limit=args.limit))
    return 0

def run_reset(args) -> int:
    if not args.yes:
        logger.error("Refusing to delete trades without --yes.")
        return 1
    repository = _repository()
    owner_id = repository.authenticate(_token(args))
    deleted = repository.delete_for_owner(owner_id)
    print(f"Deleted {deleted} trades. You can now re-sync from Telegram.")
    return 0

def run_check_source(args) -> int:
    from tradelog.infrastructure.telegram.client import TelegramClient
    report = TelegramClient().check_connection()
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0

def run_serve(args):
    import uvicorn
    uvicorn.run("tradelog.api:app", host=args.host, port=args.port)

def main():
    parser = argparse.ArgumentParser(description="Telegram trade log CLI")
    parser.add_argument("--log-level", help="Overrides LOG_LEVEL, e.g. DEBUG")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def with_token(sub):
        sub.add_argument("--token", help="User access token (JWT); defaults to TRADELOG_ACCESS_TOKEN")
        return sub

    with_token(subparsers.add_parser("sync", help="Run a single sync"))

    monitor_parser = with_token(subparsers.add_parser("monitor", help="Sync continuously"))
    monitor_parser.add_argument("--interval", type=int, help="Seconds between syncs")

    with_token(subparsers.add_parser("stats", help="Print P/L and win rate"))

    history_parser = with_token(subparsers.add_parser("history", help="Print recent trades"))
    history_parser.add_argument("--limit", type=int, default=20)

    reset_parser = with_token(subparsers.add_parser("reset", help="Delete all of your trades"))
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    subparsers.add_parser("check-source", help="Check the Telegram bot and chat configuration")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    if args.log_level:
        setup_logging(level=args.log_level)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    handlers = {
        "sync": run_sync,
        "monitor": run_sync_loop,
        "stats": run_stats,
        "history": run_history,
        "reset": run_reset,
        "check-source": run_check_source,
        "serve": run_serve,
    }
    try:
        code = handlers[args.command](args)
    except AppError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    sys.exit(code or 0)

if __name__ == "__main__":
    main()
