import time
from typing import Callable, List, Optional, Tuple
from tradelog.config.settings import settings
from tradelog.config.logging import logger
from tradelog.core.exceptions import AppError
from tradelog.core.models import RawMessage, SyncSummary, TradeRecord
from tradelog.services.dedup import PersistenceGate
from tradelog.services.parser import parse as default_parse

BACKFILL = "backfill"
INCREMENTAL = "incremental"

MODE_LABELS = {
    BACKFILL: "historical import",
    INCREMENTAL: "incremental sync",
}

class SyncService:
    """
    Drives one ingestion run: Telegram -> parser -> dedup gate -> Supabase.
    """
    def __init__(
        self,
        source=None,
        repository=None,
        parser: Callable[[RawMessage], Optional[TradeRecord]] = default_parse,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if source is None:
            from tradelog.infrastructure.telegram.client import TelegramClient
            source = TelegramClient()
        if repository is None:
            from tradelog.infrastructure.supabase.client import SupabaseTradeRepository
            repository = SupabaseTradeRepository()

        self.source = source
        self.repository = repository
        self.parser = parser
        self.gate = PersistenceGate(repository)
        if deadline_seconds is None:
            deadline_seconds = settings.SYNC_DEADLINE_SECONDS if settings else None
        self.deadline_seconds = deadline_seconds
        self.clock = clock

    def choose_mode(self, owner_id: str) -> Tuple[str, Optional[int]]:
        """
        Returns (mode, cursor). No stored trades for the caller means a
        historical import of whatever window Telegram still holds.
        """
        if self.repository.count_for_owner(owner_id) == 0:
            return BACKFILL, None

        latest = self.repository.latest_message_id(owner_id)
        if latest is None:
            # only legacy rows without a message id; nothing to resume from
            return BACKFILL, None
        return INCREMENTAL, latest + 1

    def adopt_orphans(self, owner_id: str) -> int:
        """One-way repair: rows from before per-user ownership go to the caller."""
        try:
            adopted = self.repository.adopt_orphans(owner_id)
        except AppError as e:
            logger.error(f"Error updating orphaned trades: {e}")
            return 0
        if adopted:
            logger.info(f"Assigned {adopted} orphaned trades to user {owner_id}")
        return adopted

    def run(self, access_token: Optional[str]) -> SyncSummary:
        """Executes one sync for the caller identified by access_token."""
        started = self.clock()

        def expired() -> bool:
            if not self.deadline_seconds:
                return False
            return self.clock() - started >= self.deadline_seconds

        inserted: List[TradeRecord] = []
        summary = SyncSummary(success=True)
        try:
            owner_id = self.repository.authenticate(access_token)
            logger.info(f"Starting sync for user {owner_id}...")

            self.adopt_orphans(owner_id)
            self.source.ensure_pull_mode()

            summary.mode, summary.cursor = self.choose_mode(owner_id)
            logger.info(
                f"Mode: {MODE_LABELS[summary.mode]}"
                + (f" from message {summary.cursor}" if summary.cursor is not None else "")
            )

            messages = self.source.fetch_messages(summary.cursor)
            summary.fetched = len(messages)
            if expired():
                logger.warning("Deadline reached while fetching; nothing stored this run.")
                summary.timed_out = True
                return self._finish(summary, inserted)

            trades = []
            for message in messages:
                trade = self.parser(message)
                if trade is not None:
                    trades.append(trade)
            summary.parsed = len(trades)
            logger.info(f"Parsed {summary.parsed} trades from {summary.fetched} messages")

            self.gate.persist(trades, owner_id, expired=expired, inserted=inserted)
            summary.timed_out = self.gate.stopped_early
        except AppError as e:
            logger.error(f"Sync failed: {e}")
            if inserted:
                logger.warning(f"{len(inserted)} trades were stored before the failure")
            return SyncSummary.failure(str(e))

        return self._finish(summary, inserted)

    def _finish(self, summary: SyncSummary, inserted: List[TradeRecord]) -> SyncSummary:
        summary.inserted = inserted
        summary.trades_found = len(inserted)
        summary.message = self._describe(summary)
        logger.info(summary.message)
        return summary

    @staticmethod
    def _describe(summary: SyncSummary) -> str:
        label = MODE_LABELS.get(summary.mode, "sync")
        text = f"Successfully processed {summary.trades_found} trades ({label})"
        if summary.timed_out:
            text += "; stopped at the deadline, run again to continue"
        return text
