"""
Pytest configuration and shared fixtures for DSZ Sync tests.

Provides in-memory fakes for the settings store, lease, catalog, mapper,
supplier client, scheduler, media and categories, plus sample records.
Version: 1.0.0
"""
import json
import os

os.environ.setdefault("AUTO_START_CELERY", "false")

import pytest
from unittest.mock import MagicMock

from dsz_sync.db.catalog_store import CatalogProduct
from dsz_sync.schemas.rules import PriceRuleSet, StockRuleSet
from dsz_sync.schemas.state import Mapping
from dsz_sync.services.price_engine import PriceEngine
from dsz_sync.services.stock_engine import StockEngine


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced clock; sleep() advances it too."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Settings store / lease
# ---------------------------------------------------------------------------

class FakeSettingsStore:
    """Dict-backed store with the same JSON round-trip as the Redis store."""

    def __init__(self, data=None):
        self.data = {k: json.dumps(v) for k, v in (data or {}).items()}

    def get(self, key, default=None):
        raw = self.data.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key, value):
        self.data[key] = json.dumps(value, default=str)

    def delete(self, key):
        self.data.pop(key, None)


class FakeLease:
    def __init__(self):
        self.owner = None
        self.acquire_calls = []

    def acquire(self, owner):
        self.acquire_calls.append(owner)
        if self.owner is None or self.owner == owner:
            self.owner = owner
            return True
        return False

    def release(self, owner):
        if self.owner == owner:
            self.owner = None
            return True
        return False

    def force_release(self):
        self.owner = None

    def holder(self):
        return self.owner

    def ttl_remaining(self):
        return 1800 if self.owner else 0


@pytest.fixture
def settings_store():
    return FakeSettingsStore()


@pytest.fixture
def lease():
    return FakeLease()


# ---------------------------------------------------------------------------
# Catalog / mapper
# ---------------------------------------------------------------------------

class FakeCatalog:
    """In-memory catalog_products table."""

    def __init__(self, products=None):
        self.rows = {}
        self.saves = []
        self._next_id = 1000
        for row in products or []:
            self.rows[row["id"]] = dict(row)

    def add(self, **row):
        self.rows[row["id"]] = dict(row)
        return row["id"]

    def find_by_identifier(self, sku):
        for row in self.rows.values():
            if (row.get("sku") or "").strip() == (sku or "").strip() and sku:
                return row["id"]
        return None

    def load(self, local_id):
        row = self.rows.get(local_id)
        return CatalogProduct(dict(row), store=self) if row else None

    def new_product(self):
        return CatalogProduct(store=self)

    def save_product(self, product):
        self.saves.append(product.changes)
        if product.id is None:
            self._next_id += 1
            product_id = self._next_id
            self.rows[product_id] = {**product.to_dict(), "id": product_id}
        else:
            product_id = product.id
            self.rows[product_id].update(product.changes)
        product.mark_saved(product_id)
        return product_id

    def list_identified_products(self, status=None):
        return [
            {"id": r["id"], "sku": r.get("sku"), "name": r.get("name")}
            for r in self.rows.values()
            if r.get("sku") and (status is None or r.get("status") == status)
        ]

    def search(self, text, limit=20):
        return [r for r in self.rows.values() if text.lower() in (r.get("name") or "").lower()][:limit]


class FakeMapper:
    """In-memory dsz_product_mappings table."""

    def __init__(self, mappings=None):
        self.mappings = []
        self.synced = []
        for m in mappings or []:
            self.add(**m)

    def add(self, local_id, supplier_sku, sync_enabled=True, supplier_name=""):
        mapping = Mapping(
            id=len(self.mappings) + 1,
            local_id=local_id,
            supplier_sku=supplier_sku,
            supplier_name=supplier_name,
            sync_enabled=sync_enabled,
        )
        self.mappings.append(mapping)
        return mapping.id

    def get_syncable_count(self):
        return sum(1 for m in self.mappings if m.sync_enabled)

    def get_mapped_for_sync(self, limit=100, offset=0):
        enabled = sorted((m for m in self.mappings if m.sync_enabled), key=lambda m: m.id)
        return enabled[offset:offset + limit]

    def get_mappings(self, limit=50, offset=0, **kwargs):
        return self.mappings[offset:offset + limit]

    def get_by_local_id(self, local_id):
        return next((m for m in self.mappings if m.local_id == local_id), None)

    def get_supplier_sku(self, local_id):
        mapping = self.get_by_local_id(local_id)
        return mapping.supplier_sku if mapping else None

    def map(self, local_id, sku, supplier_name=""):
        existing = self.get_by_local_id(local_id)
        if existing:
            existing.supplier_sku = sku
            return existing.id
        return self.add(local_id, sku, supplier_name=supplier_name)

    def update_last_synced(self, local_id):
        self.synced.append(local_id)


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def mapper():
    return FakeMapper()


# ---------------------------------------------------------------------------
# Supplier client
# ---------------------------------------------------------------------------

class FakeDszClient:
    """Serves records from memory and records every lookup."""

    def __init__(self, records=None):
        self.records = {r["sku"]: r for r in records or []}
        self.sku_calls = []
        self.product_calls = []
        self.orders = []
        self.error = None

    def get_products_by_skus(self, skus):
        self.sku_calls.append(list(skus))
        if self.error:
            raise self.error
        return {"result": [self.records[s] for s in skus if s in self.records]}

    def get_products(self, params=None):
        self.product_calls.append(dict(params or {}))
        if self.error:
            raise self.error
        return {"result": list(self.records.values()), "total": len(self.records)}

    def place_order(self, payload):
        self.orders.append(payload)
        if self.error:
            raise self.error
        return {"serial_number": "DSZ-0001"}


@pytest.fixture
def dsz_client():
    return FakeDszClient()


# ---------------------------------------------------------------------------
# Scheduler / media / categories
# ---------------------------------------------------------------------------

class FakeScheduler:
    def __init__(self):
        self.singles = []
        self.recurring = {}

    def schedule_single(self, event_name, delay):
        self.singles.append((event_name, delay))

    def schedule(self, event_name, interval, first_run_time=None):
        self.recurring[event_name] = {"interval": interval, "next_run": first_run_time}
        return first_run_time

    def clear(self, event_name):
        self.recurring.pop(event_name, None)

    def next_run(self, event_name):
        entry = self.recurring.get(event_name)
        return entry["next_run"] if entry else None


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def media():
    store = MagicMock()
    store.attach_image.side_effect = lambda url, local_id, is_primary=False: len(store.attach_image.mock_calls)
    store.get_media_ids.return_value = []
    return store


@pytest.fixture
def categories():
    store = MagicMock()
    store.ensure_category_path.return_value = [1, 2]
    return store


# ---------------------------------------------------------------------------
# Engines and sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def price_rules():
    return PriceRuleSet(
        markup_type="percentage", markup_value=30, gst_enabled=True,
        gst_type="exclude", rounding_enabled=True, rounding_type="99",
    )


@pytest.fixture
def stock_rules():
    return StockRuleSet()


@pytest.fixture
def price_engine(price_rules):
    return PriceEngine(rules=price_rules)


@pytest.fixture
def stock_engine(stock_rules):
    return StockEngine(rules=stock_rules)


def make_record(sku, price=100.0, stock_qty=10, **extra):
    """Supplier product record as returned by /v2/products."""
    record = {
        "sku": sku,
        "title": f"Product {sku}",
        "price": price,
        "stock_qty": stock_qty,
        "in_stock": "1",
    }
    record.update(extra)
    return record


@pytest.fixture
def sample_record():
    return make_record(
        "DSZ-100",
        description="<p>Sturdy</p>",
        gallery=["https://img.example.com/a.jpg", "https://img.example.com/b.jpg"],
        Category="Home > Garden",
        weight=2.5,
    )


@pytest.fixture
def record_factory():
    return make_record
