"""
Category store — hierarchical catalog categories.

Category store – catalog_categories table operations.
Version: 1.0.0
"""

import logging
from typing import List, Optional

from dsz_sync.db.base_store import BaseStore

logger = logging.getLogger("category_store")

TABLE = "catalog_categories"


class CategoryStore(BaseStore):

    def find_category(self, name: str, parent_id: Optional[int]) -> Optional[int]:
        query = self._client.table(TABLE).select("id").eq("name", name)
        if parent_id is None:
            query = query.is_("parent_id", "null")
        else:
            query = query.eq("parent_id", parent_id)
        rows = self._execute(query.limit(1), TABLE, "select").data or []
        return rows[0]["id"] if rows else None

    def ensure_category_path(self, path: str, delimiter: str = ">") -> List[int]:
        """
        Resolve "A > B > C" to category ids, creating missing levels.

        Existing nodes are reused by (name, parent). Returns ids root-first.
        """
        ids: List[int] = []
        parent_id: Optional[int] = None

        for name in (part.strip() for part in (path or "").split(delimiter)):
            if not name:
                continue
            category_id = self.find_category(name, parent_id)
            if category_id is None:
                rows = self._insert(TABLE, [{"name": name, "parent_id": parent_id}])
                category_id = rows[0]["id"]
                logger.info("category created name=%s parent_id=%s id=%s", name, parent_id, category_id)
            ids.append(category_id)
            parent_id = category_id

        return ids
