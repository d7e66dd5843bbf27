"""
Catalog store — local product catalog rows and the CatalogProduct record.

Catalog store – catalog_products table operations.

CatalogProduct tracks which fields were set so save() only writes the
changed columns; products stay addressable by numeric id and by SKU.
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dsz_sync.db.base_store import BaseStore

logger = logging.getLogger("catalog_store")

TABLE = "catalog_products"
PAGE_SIZE = 1000


class CatalogProduct:
    """One local catalog record with change tracking."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, store: "CatalogStore | None" = None) -> None:
        self._data: Dict[str, Any] = dict(data or {})
        self._changes: Dict[str, Any] = {}
        self._store = store

    @property
    def id(self) -> Optional[int]:
        return self._data.get("id")

    def get(self, field: str, default: Any = None) -> Any:
        value = self._data.get(field)
        return default if value is None else value

    def set(self, field: str, value: Any) -> None:
        if self._data.get(field) == value and field in self._data:
            return
        self._data[field] = value
        self._changes[field] = value

    def get_meta(self, key: str, default: Any = None) -> Any:
        return (self._data.get("meta") or {}).get(key, default)

    def set_meta(self, key: str, value: Any) -> None:
        meta = dict(self._data.get("meta") or {})
        meta[key] = value
        self.set("meta", meta)

    @property
    def changes(self) -> Dict[str, Any]:
        return dict(self._changes)

    def has_changes(self) -> bool:
        return bool(self._changes)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def mark_saved(self, product_id: Optional[int]) -> None:
        if product_id:
            self._data["id"] = product_id
        self._changes = {}

    def save(self) -> Optional[int]:
        """Persist pending changes through the owning store. Returns the id."""
        if self._store is None:
            raise RuntimeError("CatalogProduct has no store to save to")
        return self._store.save_product(self)


class CatalogStore(BaseStore):
    """Local catalog access: lookup by SKU or id, create, save, search."""

    def find_by_identifier(self, sku: str) -> Optional[int]:
        sku = (sku or "").strip()
        if not sku:
            return None
        row = self._select_one(TABLE, {"sku": sku}, columns="id")
        return row["id"] if row else None

    def load(self, local_id: int) -> Optional[CatalogProduct]:
        row = self._select_one(TABLE, {"id": local_id})
        if not row:
            return None
        return CatalogProduct(row, store=self)

    def new_product(self) -> CatalogProduct:
        return CatalogProduct(store=self)

    def save_product(self, product: CatalogProduct) -> Optional[int]:
        """Insert a new product or update the changed columns of an existing one."""
        now = datetime.now(timezone.utc).isoformat()

        if product.id is None:
            row = {k: v for k, v in product.to_dict().items() if k != "id"}
            row["created_at"] = now
            row["updated_at"] = now
            inserted = self._insert(TABLE, [row])
            product_id = inserted[0].get("id") if inserted else None
            product.mark_saved(product_id)
            logger.info("catalog product created id=%s sku=%s", product_id, row.get("sku"))
            return product_id

        changes = product.changes
        if not changes:
            return product.id

        changes["updated_at"] = now
        self._update(TABLE, {"id": product.id}, changes)
        product.mark_saved(product.id)
        logger.debug("catalog product updated id=%s fields=%s", product.id, sorted(changes))
        return product.id

    def list_identified_products(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """All products with a non-empty SKU, as {id, sku, name} rows."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            query = self._client.table(TABLE).select("id, sku, name").neq("sku", "")
            if status:
                query = query.eq("status", status)
            query = query.order("id").range(start, start + PAGE_SIZE - 1)
            page = self._execute(query, TABLE, "select").data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                break
            start += PAGE_SIZE
        return rows

    def search(self, text: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Products whose name or SKU contains text (case-insensitive)."""
        text = (text or "").replace(",", " ").strip()
        query = self._client.table(TABLE).select("id, sku, name, status")
        if text:
            query = query.or_(f"name.ilike.%{text}%,sku.ilike.%{text}%")
        query = query.order("id", desc=True).limit(limit)
        return self._execute(query, TABLE, "select").data or []
