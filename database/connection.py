"""
💾 DATABASE CONNECTION MODULE
==============================
Handles all Supabase interactions with error handling.

This is the remote half of the store. Callers never use it directly; they go
through ``database.store.ResilientTable`` which mirrors every row locally and
treats this backend as best-effort. Each call is made once: a failed remote
write is not retried, the local mirror already holds the row.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, date

from supabase import create_client, Client
from loguru import logger

from config.settings import settings


class RemoteUnavailableError(RuntimeError):
    """Raised when the remote store is not configured or could not connect."""


class DatabaseConnection:
    """
    Supabase table operations.

    Usage:
        from database.connection import db

        # Upsert (insert or update)
        db.upsert("leads", {"id": "lead-1", "first_name": "Hamad"})

        # Query records
        results = db.query("memories", filters={"entity_id": "lead-1"}, order_by="timestamp")

        # Partial update of several rows
        db.update_many("leads", ["lead-1", "lead-2"], {"status": "IGNORED"})
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client
        if self._client is None:
            self._initialize_client()

    def _initialize_client(self):
        """Initialize the Supabase client."""
        url = settings.database.supabase_url
        key = settings.database.supabase_key

        if not url or not key:
            logger.warning("⚠️ Supabase credentials not configured - using local memory only")
            logger.info("Set SUPABASE_URL and SUPABASE_KEY in your .env file")
            return

        try:
            self._client = create_client(url, key)
            logger.info("✅ Connected to Supabase successfully")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Supabase: {e}")

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Client:
        """Get the Supabase client, raising if there is none."""
        if self._client is None:
            raise RemoteUnavailableError("Supabase client is not configured")
        return self._client

    def insert(
        self,
        table: str,
        data: Dict[str, Any]
    ) -> Optional[Dict]:
        """
        Insert a single record into a table.

        Args:
            table: Table name
            data: Dictionary of column:value pairs

        Returns:
            The inserted record or None
        """
        try:
            clean_data = self._serialize_data(data)
            response = self.client.table(table).insert(clean_data).execute()

            if response.data:
                logger.debug(f"Inserted record into {table}")
                return response.data[0]
            return None

        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Insert error in {table}: {e}")
            raise

    def insert_many(
        self,
        table: str,
        records: List[Dict[str, Any]]
    ) -> List[Dict]:
        """
        Insert multiple records at once (batch insert).

        Args:
            table: Table name
            records: List of dictionaries

        Returns:
            List of inserted records
        """
        if not records:
            return []

        try:
            clean_records = [self._serialize_data(r) for r in records]
            response = self.client.table(table).insert(clean_records).execute()

            logger.info(f"Inserted {len(response.data)} records into {table}")
            return response.data

        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Batch insert error in {table}: {e}")
            raise

    def upsert(
        self,
        table: str,
        data: Dict[str, Any],
        conflict_columns: Optional[List[str]] = None
    ) -> Optional[Dict]:
        """
        Insert or update a record based on conflict columns.

        Args:
            table: Table name
            data: Dictionary of column:value pairs
            conflict_columns: Columns that determine uniqueness (default: id)

        Returns:
            The upserted record
        """
        conflict_columns = conflict_columns or ["id"]
        try:
            clean_data = self._serialize_data(data)

            response = (
                self.client
                .table(table)
                .upsert(clean_data, on_conflict=",".join(conflict_columns))
                .execute()
            )

            if response.data:
                logger.debug(f"Upserted record in {table}")
                return response.data[0]
            return None

        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Upsert error in {table}: {e}")
            raise

    def query(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict]:
        """
        Query records from a table.

        Args:
            table: Table name
            columns: Comma-separated column names or "*" for all
            filters: Dictionary of column:value pairs for WHERE clause
            order_by: Column name to sort by (prefix with - for DESC)
            limit: Maximum records to return
            offset: Number of records to skip

        Returns:
            List of matching records
        """
        try:
            query = self.client.table(table).select(columns)

            # Apply filters
            if filters:
                for col, val in filters.items():
                    if isinstance(val, list):
                        query = query.in_(col, val)
                    else:
                        query = query.eq(col, val)

            # Apply ordering
            if order_by:
                if order_by.startswith("-"):
                    query = query.order(order_by[1:], desc=True)
                else:
                    query = query.order(order_by)

            # Apply pagination
            if limit:
                query = query.limit(limit)
            if offset:
                query = query.offset(offset)

            response = query.execute()
            return response.data or []

        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Query error in {table}: {e}")
            raise

    def get_by_id(self, table: str, id: str) -> Optional[Dict]:
        """Get a single record by id."""
        results = self.query(table, filters={"id": id}, limit=1)
        return results[0] if results else None

    def update(
        self,
        table: str,
        id: str,
        data: Dict[str, Any]
    ) -> Optional[Dict]:
        """
        Update a record by ID.

        Args:
            table: Table name
            id: Record id
            data: Fields to update

        Returns:
            Updated record
        """
        try:
            clean_data = self._serialize_data(data)

            response = (
                self.client
                .table(table)
                .update(clean_data)
                .eq("id", id)
                .execute()
            )

            if response.data:
                logger.debug(f"Updated record {id} in {table}")
                return response.data[0]
            return None

        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Update error in {table}: {e}")
            raise

    def update_many(
        self,
        table: str,
        ids: List[str],
        data: Dict[str, Any]
    ) -> List[Dict]:
        """Apply the same partial update to every record in ``ids``."""
        if not ids:
            return []
        try:
            clean_data = self._serialize_data(data)
            response = (
                self.client
                .table(table)
                .update(clean_data)
                .in_("id", ids)
                .execute()
            )
            logger.debug(f"Updated {len(ids)} records in {table}")
            return response.data or []

        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Batch update error in {table}: {e}")
            raise

    def delete(self, table: str, id: str) -> bool:
        """Delete a record by ID."""
        try:
            self.client.table(table).delete().eq("id", id).execute()
            logger.debug(f"Deleted record {id} from {table}")
            return True
        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Delete error in {table}: {e}")
            raise

    def delete_all(self, table: str) -> bool:
        """Delete every record in a table."""
        try:
            self.client.table(table).delete().neq("id", "").execute()
            logger.debug(f"Cleared {table}")
            return True
        except RemoteUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Clear error in {table}: {e}")
            raise

    @staticmethod
    def _serialize_data(data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert Python objects to JSON-serializable types."""
        result = {}
        for key, value in data.items():
            if isinstance(value, (datetime, date)):
                result[key] = value.isoformat()
            elif value is None:
                result[key] = None
            else:
                result[key] = value
        return result


# Shared remote backend - stores use this unless given another one
db = DatabaseConnection()


# ===========================================
# TESTING
# ===========================================

if __name__ == "__main__":
    logger.info("Testing database connection...")

    try:
        rows = db.query("memories", order_by="-timestamp", limit=5)
        logger.info(f"✅ Found {len(rows)} recent memories")
    except Exception as e:
        logger.error(f"❌ Database test failed: {e}")
