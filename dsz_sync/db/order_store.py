"""
Order store — local orders, order notes and supplier submission records.

Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dsz_sync.db.base_store import BaseStore

logger = logging.getLogger("order_store")

ORDERS_TABLE = "orders"
NOTES_TABLE = "order_notes"
DSZ_ORDERS_TABLE = "dsz_orders"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrderStore(BaseStore):

    def load_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        return self._select_one(ORDERS_TABLE, {"id": order_id})

    def add_order_note(self, order_id: int, note: str) -> None:
        self._insert(NOTES_TABLE, [{"order_id": order_id, "note": note, "created_at": _now_iso()}])

    def update_order_meta(self, order_id: int, values: Dict[str, Any]) -> None:
        """Merge values into the order's meta JSON."""
        order = self.load_order(order_id) or {}
        meta = {**(order.get("meta") or {}), **values}
        self._update(ORDERS_TABLE, {"id": order_id}, {"meta": meta, "updated_at": _now_iso()})

    def get_dsz_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        return self._select_one(DSZ_ORDERS_TABLE, {"order_id": order_id})

    def save_dsz_order(
        self,
        order_id: int,
        serial_number: str,
        status: str,
        error_message: str = "",
    ) -> None:
        """Insert or replace the submission record for order_id."""
        self._upsert(
            DSZ_ORDERS_TABLE,
            [{
                "order_id": order_id,
                "serial_number": serial_number,
                "status": status,
                "submitted_at": _now_iso(),
                "error_message": error_message,
            }],
            on_conflict="order_id",
        )
        logger.debug("dsz order saved order_id=%s status=%s", order_id, status)

    def list_dsz_orders(self, limit: int = 50, offset: int = 0, status: str = "") -> List[Dict[str, Any]]:
        query = self._client.table(DSZ_ORDERS_TABLE).select("*")
        if status:
            query = query.eq("status", status)
        query = query.order("submitted_at", desc=True).range(offset, offset + limit - 1)
        return self._execute(query, DSZ_ORDERS_TABLE, "select").data or []
