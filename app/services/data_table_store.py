"""
Data Table Store - TableProject persistence for the data-table node
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from app.database import db
from app.models.datastore import TableProject

logger = logging.getLogger(__name__)


class DataTableStore:
    """
    Usage:
        store = DataTableStore()
        table = store.get_table(table_id)   # {'records': [...], 'schema': {...}} or None
        store.save_records(table_id, records)
    """

    def _load(self, table_id: Any) -> Optional[TableProject]:
        try:
            key = table_id if isinstance(table_id, uuid.UUID) else uuid.UUID(str(table_id))
        except ValueError:
            return None
        return db.session.get(TableProject, key)

    def get_table(self, table_id: Any) -> Optional[Dict[str, Any]]:
        table = self._load(table_id)
        if table is None:
            return None
        return {'records': list(table.records or []), 'schema': table.table_schema}

    def save_records(self, table_id: Any, records: List[Dict[str, Any]]):
        """
        Replace the records of a table.

        Raises:
            ValueError: If the table does not exist
        """
        table = self._load(table_id)
        if table is None:
            raise ValueError(f"Table {table_id} not found")
        table.records = records
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.debug(f"Table {table_id} saved with {len(records)} record(s)")
