from typing import Iterable, List, Optional, Set
from supabase import Client, create_client
from tradelog.config.settings import settings
from tradelog.config.logging import logger
from tradelog.core.exceptions import ConfigurationError, PersistenceFailure, Unauthorized
from tradelog.core.models import TradeRecord
from .mapper import SupabaseMapper

CONFLICT_KEY = "telegram_message_id"

class SupabaseTradeRepository:
    """
    Supabase (PostgREST) access to the trades table.
    Uses the service role key, so every query filters by user_id itself.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: Optional[str] = None,
    ):
        if client is None:
            url = url or (settings.SUPABASE_URL if settings else None)
            key = key or (settings.SUPABASE_SERVICE_ROLE_KEY if settings else None)
            if not url or not key:
                raise ConfigurationError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY is not set")
            client = create_client(url, key)
            logger.info(f"Supabase client initialized for {url}")
        self.client = client
        self.table_name = table or (settings.TRADES_TABLE if settings else "trades")

    def _table(self):
        return self.client.table(self.table_name)

    def authenticate(self, access_token: str) -> str:
        """Resolves a user JWT to the user id, or raises Unauthorized."""
        if not access_token:
            raise Unauthorized("Missing authorization header")
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            raise Unauthorized("Invalid authentication token")

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise Unauthorized("Invalid authentication token")
        return str(user.id)

    def adopt_orphans(self, owner_id: str) -> int:
        """Assigns rows that predate per-user ownership to owner_id."""
        try:
            response = self._table().update({"user_id": owner_id}).is_("user_id", "null").execute()
        except Exception as e:
            raise PersistenceFailure(f"Failed to assign orphaned trades: {e}")
        return len(response.data or [])

    def count_for_owner(self, owner_id: str) -> int:
        try:
            response = (
                self._table()
                .select("id", count="exact")
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(f"Failed to count trades: {e}")
        return response.count or 0

    def latest_message_id(self, owner_id: str) -> Optional[int]:
        try:
            response = (
                self._table()
                .select(CONFLICT_KEY)
                .eq("user_id", owner_id)
                .not_.is_(CONFLICT_KEY, "null")
                .order(CONFLICT_KEY, desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(f"Failed to query latest message id: {e}")
        if not response.data:
            return None
        return int(response.data[0][CONFLICT_KEY])

    def existing_message_ids(self, ids: Iterable[int]) -> Set[int]:
        ids = list(ids)
        if not ids:
            return set()
        try:
            response = self._table().select(CONFLICT_KEY).in_(CONFLICT_KEY, ids).execute()
        except Exception as e:
            raise PersistenceFailure(f"Failed to look up existing trades: {e}")
        return {int(row[CONFLICT_KEY]) for row in response.data or []}

    def insert_ignore(self, trade: TradeRecord) -> bool:
        """
        Upsert with ON CONFLICT DO NOTHING on telegram_message_id.
        Returns True when a new row was written, False on a conflict.
        """
        row = SupabaseMapper.trade_to_row(trade)
        try:
            response = (
                self._table()
                .upsert(row, on_conflict=CONFLICT_KEY, ignore_duplicates=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to insert trade {trade.external_message_id}: {e}")
            raise PersistenceFailure(f"Failed to insert trade {trade.external_message_id}: {e}")
        return bool(response.data)

    def list_trades(self, owner_id: str, ascending: bool = False) -> List[TradeRecord]:
        try:
            response = (
                self._table()
                .select("*")
                .eq("user_id", owner_id)
                .order("timestamp", desc=not ascending)
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(f"Failed to fetch trades: {e}")
        return [SupabaseMapper.row_to_trade(row) for row in response.data or []]

    def delete_for_owner(self, owner_id: str) -> int:
        try:
            response = self._table().delete().eq("user_id", owner_id).execute()
        except Exception as e:
            raise PersistenceFailure(f"Failed to delete trades: {e}")
        deleted = len(response.data or [])
        logger.info(f"Deleted {deleted} trades for user {owner_id}")
        return deleted
