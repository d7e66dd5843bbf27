"""
Product mapper — the local product <-> supplier SKU join table.

Product mapper – dsz_product_mappings table operations.

Both local_id and supplier_sku are unique, so a mapping is strictly
one-to-one. get_mapped_for_sync() orders by id so that a batch offset
always addresses the same records while the table is unchanged.
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dsz_sync.core.constants.sync import STATUS_PUBLISH
from dsz_sync.core.exceptions import AlreadyExists
from dsz_sync.db.base_store import BaseStore
from dsz_sync.schemas.state import Mapping

logger = logging.getLogger("product_mapper")

TABLE = "dsz_product_mappings"
ORDERABLE_COLUMNS = ("created_at", "supplier_sku", "last_synced")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProductMapper(BaseStore):

    def __init__(self, supabase_client=None, catalog=None) -> None:
        super().__init__(supabase_client)
        self._catalog = catalog

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_local_id(self, local_id: int) -> Optional[Mapping]:
        row = self._select_one(TABLE, {"local_id": local_id})
        return Mapping.model_validate(row) if row else None

    def get_by_supplier_sku(self, sku: str) -> Optional[Mapping]:
        row = self._select_one(TABLE, {"supplier_sku": sku})
        return Mapping.model_validate(row) if row else None

    def get_supplier_sku(self, local_id: int) -> Optional[str]:
        mapping = self.get_by_local_id(local_id)
        return mapping.supplier_sku if mapping else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def map(self, local_id: int, sku: str, supplier_name: str = "") -> int:
        """
        Create or update the mapping for local_id.

        Raises:
            AlreadyExists: sku is already mapped to a different local product
        """
        sku = (sku or "").strip()

        owner = self.get_by_supplier_sku(sku)
        if owner and owner.local_id != local_id:
            logger.warning(f"SKU {sku} already mapped to product {owner.local_id}, refusing map to {local_id}")
            raise AlreadyExists(f"SKU {sku} is already mapped to product {owner.local_id}")

        existing = self.get_by_local_id(local_id)
        if existing:
            self._update(
                TABLE,
                {"local_id": local_id},
                {"supplier_sku": sku, "supplier_name": supplier_name, "updated_at": _now_iso()},
            )
            logger.info(f"Product mapping updated: local_id={local_id}, sku={sku}")
            return existing.id

        now = _now_iso()
        rows = self._insert(TABLE, [{
            "local_id": local_id,
            "supplier_sku": sku,
            "supplier_name": supplier_name,
            "sync_enabled": True,
            "created_at": now,
            "updated_at": now,
        }])
        mapping_id = rows[0]["id"] if rows else None
        logger.info(f"Product mapping created: local_id={local_id}, sku={sku}, id={mapping_id}")
        return mapping_id

    def unmap(self, local_id: int) -> bool:
        self._delete(TABLE, {"local_id": local_id})
        logger.info(f"Product mapping removed: local_id={local_id}")
        return True

    def set_sync_enabled(self, local_id: int, enabled: bool) -> bool:
        rows = self._update(
            TABLE, {"local_id": local_id}, {"sync_enabled": bool(enabled), "updated_at": _now_iso()}
        )
        return bool(rows)

    def update_last_synced(self, local_id: int) -> None:
        self._update(TABLE, {"local_id": local_id}, {"last_synced": _now_iso()})

    def clear_all(self) -> None:
        """Delete every mapping (admin reset)."""
        query = self._client.table(TABLE).delete().gte("id", 0)
        self._execute(query, TABLE, "delete")
        logger.warning("All product mappings cleared")

    # ------------------------------------------------------------------
    # Listing and counts
    # ------------------------------------------------------------------

    def get_mappings(
        self,
        limit: int = 50,
        offset: int = 0,
        search: str = "",
        sync_enabled: Optional[bool] = None,
        orderby: str = "created_at",
        order: str = "desc",
    ) -> List[Mapping]:
        orderby = orderby if orderby in ORDERABLE_COLUMNS else "created_at"
        descending = str(order).lower() != "asc"

        query = self._client.table(TABLE).select("*")
        query = self._apply_filters(query, search, sync_enabled)
        query = query.order(orderby, desc=descending).range(offset, offset + limit - 1)
        rows = self._execute(query, TABLE, "select").data or []
        return [Mapping.model_validate(r) for r in rows]

    def get_count(self, sync_enabled: Optional[bool] = None, search: str = "") -> int:
        query = self._client.table(TABLE).select("id", count="exact")
        query = self._apply_filters(query, search, sync_enabled)
        return self._count(query)

    def get_mapped_for_sync(self, limit: int = 100, offset: int = 0) -> List[Mapping]:
        """One page of sync-enabled mappings, ordered by id ascending."""
        query = (
            self._client.table(TABLE)
            .select("*")
            .eq("sync_enabled", True)
            .order("id")
            .range(offset, offset + limit - 1)
        )
        rows = self._execute(query, TABLE, "select").data or []
        return [Mapping.model_validate(r) for r in rows]

    def get_syncable_count(self) -> int:
        query = self._client.table(TABLE).select("id", count="exact").eq("sync_enabled", True)
        return self._count(query)

    def get_never_synced_count(self) -> int:
        query = self._client.table(TABLE).select("id", count="exact").is_("last_synced", "null")
        return self._count(query)

    def get_synced_since_count(self, since: datetime) -> int:
        query = self._client.table(TABLE).select("id", count="exact").gte("last_synced", since.isoformat())
        return self._count(query)

    def get_unmapped_count(self) -> int:
        """Catalog products with a SKU but no mapping."""
        if self._catalog is None:
            return 0
        mapped = self._mapped_local_ids()
        return sum(1 for p in self._catalog.list_identified_products() if p["id"] not in mapped)

    def _apply_filters(self, query, search: str, sync_enabled: Optional[bool]):
        if sync_enabled is not None:
            query = query.eq("sync_enabled", bool(sync_enabled))
        search = (search or "").replace(",", " ").strip()
        if search:
            query = query.or_(f"supplier_sku.ilike.%{search}%,supplier_name.ilike.%{search}%")
        return query

    def _count(self, query) -> int:
        response = self._execute(query, TABLE, "count")
        return int(response.count or 0)

    def _mapped_local_ids(self) -> set:
        ids = set()
        start = 0
        while True:
            query = self._client.table(TABLE).select("local_id").order("id").range(start, start + 999)
            page = self._execute(query, TABLE, "select").data or []
            ids.update(r["local_id"] for r in page)
            if len(page) < 1000:
                return ids
            start += 1000

    # ------------------------------------------------------------------
    # Algorithms
    # ------------------------------------------------------------------

    def auto_map_by_identifier(self) -> Dict[str, Any]:
        """
        Map every published, unmapped catalog product whose SKU is set,
        assuming the local SKU equals the supplier SKU.

        No supplier lookup is made, so a coincidental SKU match maps the
        wrong product.
        """
        results: Dict[str, Any] = {"mapped": 0, "skipped": 0, "details": []}
        if self._catalog is None:
            return results

        mapped = self._mapped_local_ids()
        for product in self._catalog.list_identified_products(status=STATUS_PUBLISH):
            if product["id"] in mapped:
                continue
            sku = (product.get("sku") or "").strip()
            try:
                self.map(product["id"], sku, "")
            except AlreadyExists:
                results["skipped"] += 1
                continue
            results["mapped"] += 1
            results["details"].append({"local_id": product["id"], "sku": sku, "status": "mapped"})

        logger.info(f"Auto-mapping completed: mapped={results['mapped']}, skipped={results['skipped']}")
        return results

    def search_local_products(self, search: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Catalog search annotated with the current mapping of each hit."""
        if self._catalog is None:
            return []

        products = self._catalog.search(search, limit)
        if not products:
            return []

        ids = [p["id"] for p in products]
        query = self._client.table(TABLE).select("local_id, supplier_sku").in_("local_id", ids)
        rows = self._execute(query, TABLE, "select").data or []
        mapped_to = {r["local_id"]: r["supplier_sku"] for r in rows}

        return [
            {**p, "is_mapped": p["id"] in mapped_to, "mapped_to": mapped_to.get(p["id"])}
            for p in products
        ]
