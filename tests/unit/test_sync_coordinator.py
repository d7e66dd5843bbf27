"""
Unit tests for SyncCoordinator and the per-record apply functions.

Tests cover:
- Batch progression over 250 mappings (40 / 80 / 100)
- Not-found deactivation and last-synced stamping
- Live vs stale in-progress runs, lease ownership
- Supplier fetch failure completing the run with the error recorded
- apply_price / apply_stock change detection, sale price, republish
- Scheduling through the scheduler
Version: 1.0.0
"""
import pytest

from dsz_sync.core.constants.sync import OPTION_SYNC_STATE, SYNC_CONTINUE_EVENT, SYNC_EVENT
from dsz_sync.core.exceptions import NotInitialized, TransportError, ValidationError
from dsz_sync.db.catalog_store import CatalogProduct
from dsz_sync.schemas.rules import StockRuleSet
from dsz_sync.services.stock_engine import StockEngine
from dsz_sync.services.sync_coordinator import (
    SyncCoordinator,
    apply_price,
    apply_stock,
    progress_percent,
)

from conftest import FakeCatalog, FakeDszClient, FakeMapper, make_record


def _build(n, clock, settings_store, lease, scheduler, price_engine, stock_engine, missing=()):
    catalog = FakeCatalog()
    mapper = FakeMapper()
    records = []
    for i in range(1, n + 1):
        sku = f"SKU-{i}"
        catalog.add(id=i, sku=sku, name=f"Local {i}", status="publish")
        mapper.add(i, sku)
        if sku not in missing:
            records.append(make_record(sku, price=100.0, stock_qty=10))
    client = FakeDszClient(records)
    coordinator = SyncCoordinator(
        client=client,
        mapper=mapper,
        catalog=catalog,
        price_engine=price_engine,
        stock_engine=stock_engine,
        store=settings_store,
        lease=lease,
        scheduler=scheduler,
        clock=clock,
        batch_size=100,
    )
    return coordinator, catalog, mapper, client


@pytest.fixture
def build(clock, settings_store, lease, scheduler, price_engine, stock_engine):
    def _factory(n, missing=()):
        return _build(n, clock, settings_store, lease, scheduler, price_engine, stock_engine, missing)
    return _factory


# --------------------------------------------------------------------------
# progress_percent
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestProgressPercent:

    @pytest.mark.parametrize("offset, total, expected", [
        (100, 250, 40),
        (200, 250, 80),
        (250, 250, 100),
        (1, 8, 13),
        (0, 0, 0),
        (300, 250, 100),
    ])
    def test_progress(self, offset, total, expected):
        assert progress_percent(offset, total) == expected


# --------------------------------------------------------------------------
# Batch run
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestBatchRun:

    def test_three_steps_over_250_mappings(self, build, scheduler, lease):
        coordinator, catalog, mapper, client = build(250)

        first = coordinator.run_sync()
        second = coordinator.continue_batch()
        third = coordinator.continue_batch()

        assert [first["progress"], second["progress"], third["progress"]] == [40, 80, 100]
        assert first["status"] == "processing"
        assert first["current_offset"] == 100
        assert second["current_offset"] == 200
        assert third["status"] == "complete"
        assert third["products_updated"] == 250
        assert scheduler.singles == [(SYNC_CONTINUE_EVENT, 5), (SYNC_CONTINUE_EVENT, 5)]
        assert lease.owner is None
        assert len(client.sku_calls) == 3
        assert catalog.rows[1]["regular_price"] == 143.99
        assert catalog.rows[250]["stock_qty"] == 10

    def test_state_reset_after_completion(self, build, settings_store, clock):
        coordinator, *_ = build(3)

        coordinator.run_sync()

        state = settings_store.get(OPTION_SYNC_STATE)
        assert state["in_progress"] is False
        assert state["current_offset"] == 0
        assert state["last_products_updated"] == 3
        assert state["last_sync"] == clock.now
        assert state["run_id"] is None

    def test_no_mappings_completes_immediately(self, build):
        coordinator, *_ = build(0)

        result = coordinator.run_sync()

        assert result["status"] == "complete"
        assert result["message"] == "No mapped products to sync"

    def test_unchanged_products_are_skipped(self, build):
        coordinator, catalog, *_ = build(2)
        coordinator.run_sync()
        saves_after_first = len(catalog.saves)

        result = coordinator.run_sync()

        assert result["products_updated"] == 0
        assert result["batch"]["skipped"] == 2
        assert len(catalog.saves) == saves_after_first

    def test_every_visited_mapping_stamped(self, build):
        coordinator, _, mapper, _ = build(5)

        coordinator.run_sync()

        assert sorted(mapper.synced) == [1, 2, 3, 4, 5]

    def test_not_found_is_deactivated_and_stamped(self, build):
        coordinator, catalog, mapper, _ = build(3, missing=("SKU-2",))

        result = coordinator.run_sync()

        row = catalog.rows[2]
        assert row["status"] == "draft"
        assert row["stock_qty"] == 0
        assert row["stock_status"] == "outofstock"
        assert 2 in mapper.synced
        assert result["batch"]["not_found"] == 1
        assert result["batch"]["deactivated"] == 1

    def test_not_found_left_alone_without_deactivate_rule(self, build, clock, settings_store, lease, scheduler, price_engine):
        engine = StockEngine(rules=StockRuleSet(deactivate_if_not_found=False))
        coordinator, catalog, mapper, _ = _build(
            2, clock, settings_store, lease, scheduler, price_engine, engine, missing=("SKU-1",)
        )

        coordinator.run_sync()

        assert catalog.rows[1]["status"] == "publish"
        assert 1 not in mapper.synced

    def test_missing_local_product_counts_as_error(self, build):
        coordinator, catalog, *_ = build(2)
        del catalog.rows[2]

        result = coordinator.run_sync()

        assert result["errors_count"] == 1
        assert result["products_updated"] == 1

    def test_memory_guard_stops_batch_early(self, build, scheduler):
        coordinator, *_ = build(150)

        class Guard:
            calls = 0

            def is_near_limit(self):
                Guard.calls += 1
                return Guard.calls >= 10

        coordinator._memory = Guard()
        result = coordinator.run_sync()

        assert result["status"] == "processing"
        assert result["current_offset"] == 10
        assert scheduler.singles == [(SYNC_CONTINUE_EVENT, 5)]

    def test_fetch_error_completes_with_error(self, build, settings_store, lease):
        coordinator, _, _, client = build(3)
        client.error = TransportError("Request to /v2/products failed: timeout")

        result = coordinator.run_sync()

        assert result["status"] == "error"
        state = settings_store.get(OPTION_SYNC_STATE)
        assert state["in_progress"] is False
        assert state["last_error"] == "Request to /v2/products failed: timeout"
        assert lease.owner is None

    def test_missing_collaborators_raise(self, settings_store, lease, price_engine, stock_engine):
        coordinator = SyncCoordinator(
            client=FakeDszClient(), mapper=None, catalog=None,
            price_engine=price_engine, stock_engine=stock_engine,
            store=settings_store, lease=lease,
        )
        with pytest.raises(NotInitialized):
            coordinator.run_sync()


# --------------------------------------------------------------------------
# Concurrency / staleness
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestRunExclusion:

    def _mark_in_progress(self, settings_store, last_batch_time, run_id="old-run"):
        settings_store.set(OPTION_SYNC_STATE, {
            "in_progress": True,
            "current_offset": 100,
            "total_products": 250,
            "last_batch_time": last_batch_time,
            "run_id": run_id,
        })

    def test_live_run_is_not_reset(self, build, settings_store, clock):
        coordinator, *_ = build(3)
        self._mark_in_progress(settings_store, clock.now - 60)

        result = coordinator.manual_sync()

        assert result == {"status": "skipped", "message": "Sync already in progress"}
        assert settings_store.get(OPTION_SYNC_STATE)["current_offset"] == 100

    def test_stale_run_is_reset_and_restarted(self, build, settings_store, clock, lease):
        coordinator, *_ = build(3)
        self._mark_in_progress(settings_store, clock.now - 1800)
        lease.owner = "old-run"

        result = coordinator.run_scheduled_sync()

        assert result["status"] == "complete"
        assert result["products_updated"] == 3

    def test_lease_held_elsewhere_skips(self, build, lease):
        coordinator, *_ = build(3)
        lease.owner = "other-worker"

        result = coordinator.run_sync()

        assert result["status"] == "skipped"

    def test_continue_when_idle(self, build):
        coordinator, *_ = build(3)
        assert coordinator.continue_batch() == {"status": "complete", "message": "Sync not in progress"}

    def test_continue_without_lease_skips(self, build, settings_store, clock, lease):
        coordinator, *_ = build(3)
        self._mark_in_progress(settings_store, clock.now, run_id="mine")
        lease.owner = "someone-else"

        result = coordinator.continue_batch()

        assert result["status"] == "skipped"

    def test_reset_sync_state_releases_lease(self, build, settings_store, clock, lease):
        coordinator, *_ = build(3)
        self._mark_in_progress(settings_store, clock.now)
        lease.owner = "old-run"

        coordinator.reset_sync_state()

        state = settings_store.get(OPTION_SYNC_STATE)
        assert state["in_progress"] is False
        assert state["current_offset"] == 0
        assert lease.owner is None

    def test_status_reports_progress_and_staleness(self, build, settings_store, clock):
        coordinator, *_ = build(3)
        self._mark_in_progress(settings_store, clock.now - 3600)

        status = coordinator.get_sync_status()

        assert status["in_progress"] is True
        assert status["is_stale"] is True
        assert status["progress"] == 40


# --------------------------------------------------------------------------
# apply_price / apply_stock
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestApplyPrice:

    def test_sets_regular_price(self, price_engine):
        product = CatalogProduct({"id": 1})

        assert apply_price(product, make_record("A", price=100), price_engine) is True
        assert product.get("regular_price") == 143.99

    def test_unchanged_within_epsilon(self, price_engine):
        product = CatalogProduct({"id": 1, "regular_price": 143.99})

        assert apply_price(product, make_record("A", price=100), price_engine) is False
        assert product.has_changes() is False

    @pytest.mark.parametrize("price", [0, -5, None, "", "abc"])
    def test_invalid_cost_is_skipped(self, price_engine, price):
        product = CatalogProduct({"id": 1})
        assert apply_price(product, make_record("A", price=price), price_engine) is False

    def test_special_price_below_cost_sets_sale(self, price_engine):
        product = CatalogProduct({"id": 1})
        record = make_record(
            "A", price=100, special_price=80,
            special_price_from_date="2024-01-01", special_price_end_date="2024-02-01",
        )

        apply_price(product, record, price_engine)

        assert product.get("sale_price") == 114.99
        assert product.get("sale_price_from") == "2024-01-01"
        assert product.get("sale_price_to") == "2024-02-01"

    def test_special_price_above_cost_ignored(self, price_engine):
        product = CatalogProduct({"id": 1})

        apply_price(product, make_record("A", price=100, special_price=120), price_engine)

        assert product.get("sale_price") is None

    @pytest.mark.parametrize("special", ["0", 0, -1, "", "n/a"])
    def test_non_positive_special_price_ignored(self, price_engine, special):
        product = CatalogProduct({"id": 1})

        apply_price(product, make_record("A", price=100, special_price=special), price_engine)

        assert product.get("regular_price") == 143.99
        assert product.get("sale_price") is None

    def test_stale_sale_price_cleared(self, price_engine):
        product = CatalogProduct({"id": 1, "regular_price": 143.99, "sale_price": 99.99})

        assert apply_price(product, make_record("A", price=100), price_engine) is True
        assert product.changes["sale_price"] is None


@pytest.mark.unit
class TestApplyStock:

    def test_sets_quantity_and_status(self, stock_engine):
        product = CatalogProduct({"id": 1, "status": "publish"})

        assert apply_stock(product, make_record("A", stock_qty=5), stock_engine) is True
        assert product.get("stock_qty") == 5
        assert product.get("stock_status") == "instock"
        assert product.get("manage_stock") is True

    def test_no_change(self, stock_engine):
        product = CatalogProduct({"id": 1, "stock_qty": 5, "stock_status": "instock"})
        assert apply_stock(product, make_record("A", stock_qty=5), stock_engine) is False

    def test_status_untouched_without_auto_out_of_stock(self):
        engine = StockEngine(rules=StockRuleSet(auto_out_of_stock=False))
        product = CatalogProduct({"id": 1, "stock_qty": 5, "stock_status": "instock"})

        assert apply_stock(product, make_record("A", stock_qty=0), engine) is True
        assert product.get("stock_qty") == 0
        assert product.get("stock_status") == "instock"

    def test_republish_on_restock(self):
        engine = StockEngine(rules=StockRuleSet(republish_on_restock=True))
        product = CatalogProduct({"id": 1, "status": "draft", "stock_qty": 0, "stock_status": "outofstock"})

        apply_stock(product, make_record("A", stock_qty=4), engine)

        assert product.get("status") == "publish"

    def test_no_republish_when_still_empty(self):
        engine = StockEngine(rules=StockRuleSet(republish_on_restock=True))
        product = CatalogProduct({"id": 1, "status": "draft", "stock_qty": 0, "stock_status": "outofstock"})

        assert apply_stock(product, make_record("A", stock_qty=0), engine) is False
        assert product.get("status") == "draft"


# --------------------------------------------------------------------------
# Deactivation / scheduling
# --------------------------------------------------------------------------

@pytest.mark.unit
class TestDeactivateAndSchedule:

    def test_deactivate_only_published(self, build):
        coordinator, catalog, *_ = build(2)
        catalog.rows[2]["status"] = "draft"

        assert coordinator.deactivate_product(1) is True
        assert coordinator.deactivate_product(2) is False
        assert coordinator.deactivate_product(999) is False

    def test_schedule_sync(self, build, scheduler, settings_store, clock):
        coordinator, *_ = build(1)

        next_run = coordinator.schedule_sync("twicedaily")

        assert next_run == clock.now
        assert scheduler.recurring[SYNC_EVENT]["interval"] == 43200
        assert settings_store.get(OPTION_SYNC_STATE)["frequency"] == "twicedaily"
        assert coordinator.get_next_scheduled() == clock.now

    def test_schedule_unknown_frequency(self, build):
        coordinator, *_ = build(1)
        with pytest.raises(ValidationError):
            coordinator.schedule_sync("weekly")

    def test_unschedule(self, build, scheduler):
        coordinator, *_ = build(1)
        coordinator.schedule_sync("hourly")

        coordinator.unschedule_sync()

        assert coordinator.get_next_scheduled() is None

    def test_frequencies(self, build):
        coordinator, *_ = build(1)
        assert set(coordinator.get_frequencies()) == {"hourly", "twicedaily", "daily"}
