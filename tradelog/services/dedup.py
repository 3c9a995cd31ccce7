from typing import Callable, Iterable, List, Optional, Protocol, Set
from tradelog.config.logging import logger
from tradelog.core.models import TradeRecord

class TradeStore(Protocol):
    def existing_message_ids(self, ids: Iterable[int]) -> Set[int]: ...
    def insert_ignore(self, trade: TradeRecord) -> bool: ...


class PersistenceGate:
    """
    Decides which parsed trades are new and writes them.
    telegram_message_id is the only identity; the unique constraint in the
    table is what actually guarantees one row per message, this class just
    avoids pointless writes and counts what was really inserted.
    """

    def __init__(self, store: TradeStore):
        self.store = store
        self.stopped_early = False

    @staticmethod
    def collapse(trades: Iterable[TradeRecord]) -> List[TradeRecord]:
        """Keeps the first trade per message id, preserving order."""
        seen: Set[int] = set()
        unique = []
        for trade in trades:
            if trade.external_message_id in seen:
                continue
            seen.add(trade.external_message_id)
            unique.append(trade)
        return unique

    def filter_new(self, trades: List[TradeRecord]) -> List[TradeRecord]:
        existing = self.store.existing_message_ids(t.external_message_id for t in trades)
        if existing:
            logger.info(f"Skipped {len(existing)} trades already stored.")
        return [t for t in trades if t.external_message_id not in existing]

    def persist(
        self,
        trades: Iterable[TradeRecord],
        owner_id: str,
        expired: Optional[Callable[[], bool]] = None,
        inserted: Optional[List[TradeRecord]] = None,
    ) -> List[TradeRecord]:
        """
        Writes the new trades one by one with upsert-ignore semantics.
        Returns the trades that produced a row. A PersistenceFailure from the
        store propagates; rows written before it stay written. Passing an
        `inserted` list lets the caller see progress even when that happens.
        """
        inserted = [] if inserted is None else inserted
        self.stopped_early = False
        candidates = self.collapse(trades)
        if not candidates:
            return inserted

        for trade in self.filter_new(candidates):
            if expired is not None and expired():
                logger.warning(
                    f"Deadline reached after {len(inserted)} inserts; stopping early."
                )
                self.stopped_early = True
                break
            owned = trade.with_owner(owner_id)
            if self.store.insert_ignore(owned):
                inserted.append(owned)
            else:
                # lost a race with another run; the other row stands
                logger.info(f"Trade {trade.external_message_id} already exists, ignored.")
        return inserted
