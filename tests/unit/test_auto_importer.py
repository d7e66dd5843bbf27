"""
Unit tests for AutoImporter.

Tests cover:
- Disabled / in-progress / stale-run handling
- Remote params and local re-filtering of candidates
- Import loop counting (imported / skipped / errors)
- History cap and 7/30-day stats
- Scheduling with the first-run delay

Version: 1.0.0
"""
import pytest
from unittest.mock import MagicMock

from dsz_sync.core.constants.sync import (
    AUTO_IMPORT_EVENT,
    OPTION_AUTO_IMPORT_HISTORY,
    OPTION_AUTO_IMPORT_STATE,
)
from dsz_sync.core.exceptions import AlreadyExists, NotInitialized, TransportError, ValidationError
from dsz_sync.services.auto_importer import AutoImporter

from conftest import FakeDszClient, make_record


@pytest.fixture
def product_importer():
    return MagicMock()


@pytest.fixture
def auto(product_importer, catalog, settings_store, lease, scheduler, clock):
    client = FakeDszClient([make_record(f"NEW-{i}", stock_qty=20) for i in range(3)])
    return AutoImporter(
        importer=product_importer,
        client=client,
        catalog=catalog,
        store=settings_store,
        lease=lease,
        scheduler=scheduler,
        clock=clock,
    )


def _enable(auto, **overrides):
    auto.save_settings({"enabled": True, "min_stock_qty": 10, **overrides})


@pytest.mark.unit
class TestSettings:

    def test_defaults(self, auto):
        settings = auto.get_settings()
        assert settings.enabled is False
        assert settings.frequency == "daily"
        assert settings.max_products_per_run == 50
        assert settings.min_stock_qty == 10

    def test_save_merges(self, auto):
        auto.save_settings({"enabled": True})
        auto.save_settings({"min_stock_qty": 3})

        settings = auto.get_settings()
        assert settings.enabled is True
        assert settings.min_stock_qty == 3

    def test_save_rejects_out_of_range(self, auto):
        with pytest.raises(ValidationError):
            auto.save_settings({"max_products_per_run": 500})


@pytest.mark.unit
class TestRunImport:

    def test_disabled_skips(self, auto, product_importer):
        results = auto.run_import()

        assert results["status"] == "skipped"
        assert results["message"] == "Auto import is disabled"
        product_importer.import_product.assert_not_called()

    def test_imports_candidates(self, auto, product_importer, lease, settings_store):
        _enable(auto)
        product_importer.import_product.side_effect = [101, AlreadyExists("dup"), TransportError("timeout")]

        results = auto.run_import()

        assert results["status"] == "complete"
        assert results["imported"] == 1
        assert results["skipped"] == 1
        assert results["errors"] == 1
        assert results["error_messages"] == ["NEW-2: timeout"]
        assert results["message"] == "Import complete: 1 imported, 1 skipped, 1 errors"
        product_importer.import_product.assert_any_call(
            make_record("NEW-0", stock_qty=20), status="publish"
        )
        state = settings_store.get(OPTION_AUTO_IMPORT_STATE)
        assert state["in_progress"] is False
        assert state["last_results"]["imported"] == 1
        assert lease.owner is None

    def test_unexpected_exception_counts_as_error(self, auto, product_importer):
        _enable(auto)
        product_importer.import_product.side_effect = RuntimeError("boom")

        results = auto.run_import()

        assert results["errors"] == 3
        assert results["error_messages"][0] == "NEW-0: boom"

    def test_no_candidates(self, auto, catalog, product_importer):
        _enable(auto)
        for i in range(3):
            catalog.add(id=i + 1, sku=f"NEW-{i}", name="exists")

        results = auto.run_import()

        assert results["status"] == "complete"
        assert results["message"] == "No new products to import"
        product_importer.import_product.assert_not_called()

    def test_fetch_error_completes_with_error(self, auto, lease):
        _enable(auto)
        auto._client.error = TransportError("Connection failed")

        results = auto.run_import()

        assert results["status"] == "error"
        assert results["errors"] == 1
        assert auto.get_history()[0]["status"] == "error"
        assert lease.owner is None

    def test_live_run_skips(self, auto, settings_store, clock, product_importer):
        _enable(auto)
        settings_store.set(OPTION_AUTO_IMPORT_STATE, {"in_progress": True, "last_update": clock() - 60})

        results = auto.run_import()

        assert results["message"] == "Import already in progress"
        product_importer.import_product.assert_not_called()

    def test_stale_run_is_reset(self, auto, settings_store, clock, product_importer):
        _enable(auto)
        settings_store.set(OPTION_AUTO_IMPORT_STATE, {"in_progress": True, "last_update": clock() - 1800})
        product_importer.import_product.return_value = 5

        results = auto.run_import()

        assert results["imported"] == 3

    def test_lease_held_elsewhere_skips(self, auto, lease, product_importer):
        _enable(auto)
        lease.owner = "other-run"

        results = auto.run_import()

        assert results["status"] == "skipped"
        product_importer.import_product.assert_not_called()

    def test_memory_guard_stops_early(self, auto, product_importer):
        _enable(auto)
        product_importer.import_product.return_value = 7
        auto._memory = MagicMock()
        auto._memory.is_near_limit.return_value = True

        results = auto.run_import()

        assert results["imported"] == 1


@pytest.mark.unit
class TestFetchCandidates:

    def test_remote_params(self, auto):
        settings = auto.save_settings({
            "max_products_per_run": 150,
            "filter_new_arrival": True,
            "filter_free_shipping": True,
            "filter_category_ids": [12, 14],
        })

        auto.fetch_candidates(settings)

        params = auto._client.product_calls[0]
        assert params == {
            "limit": 200,
            "page_no": 1,
            "new_arrival": True,
            "au_free_shipping": True,
            "category_id": 12,
        }

    def test_local_filters(self, auto):
        auto._client = FakeDszClient([
            make_record("LOW", stock_qty=2),
            make_record("OK", stock_qty=20, new_arrival="1", category_id=12),
            make_record("NOT-NEW", stock_qty=20, new_arrival="0"),
            make_record("WRONG-CAT", stock_qty=20, new_arrival=1, category_id=99),
            {"sku": "", "title": "no sku", "stock_qty": 50},
        ])
        settings = auto.save_settings({"filter_new_arrival": True, "filter_category_ids": [12]})

        candidates = auto.fetch_candidates(settings)

        assert [c["sku"] for c in candidates] == ["OK"]

    def test_caps_at_max(self, auto):
        auto._client = FakeDszClient([make_record(f"S-{i}", stock_qty=50) for i in range(10)])
        settings = auto.save_settings({"max_products_per_run": 4})

        assert len(auto.fetch_candidates(settings)) == 4


@pytest.mark.unit
class TestHistoryAndStats:

    def test_history_capped(self, auto, clock):
        for i in range(35):
            auto.complete_import({"status": "complete", "imported": i})
            clock.advance(1)

        history = auto._store.get(OPTION_AUTO_IMPORT_HISTORY)
        assert len(history) == 30
        assert history[0]["imported"] == 34
        assert len(auto.get_history()) == 10

    def test_stats_windows(self, auto, settings_store, clock):
        day = 86400
        settings_store.set(OPTION_AUTO_IMPORT_HISTORY, [
            {"timestamp": clock() - 1 * day, "imported": 4, "skipped": 1, "errors": 0, "status": "complete"},
            {"timestamp": clock() - 10 * day, "imported": 3, "skipped": 0, "errors": 2, "status": "complete"},
            {"timestamp": clock() - 40 * day, "imported": 5, "skipped": 0, "errors": 0, "status": "complete"},
        ])

        stats = auto.get_stats()

        assert stats["total_runs"] == 3
        assert stats["total_imported"] == 12
        assert stats["total_skipped"] == 1
        assert stats["total_errors"] == 2
        assert stats["last_7_days"] == {"runs": 1, "imported": 4}
        assert stats["last_30_days"] == {"runs": 2, "imported": 7}

    def test_clear_history(self, auto):
        auto.complete_import({"status": "complete"})
        auto.clear_history()
        assert auto.get_history() == []


@pytest.mark.unit
class TestScheduling:

    def test_schedule_first_run_in_a_minute(self, auto, scheduler, clock):
        next_run = auto.schedule_import("twicedaily")

        assert next_run == clock() + 60
        assert scheduler.recurring[AUTO_IMPORT_EVENT]["interval"] == 43200
        assert auto.get_status()["next_scheduled"] == clock() + 60

    def test_unknown_frequency(self, auto):
        with pytest.raises(ValidationError):
            auto.schedule_import("weekly")

    def test_unschedule(self, auto, scheduler):
        auto.schedule_import()
        auto.unschedule_import()
        assert AUTO_IMPORT_EVENT not in scheduler.recurring

    def test_no_scheduler(self, product_importer, catalog, settings_store, lease):
        auto = AutoImporter(product_importer, FakeDszClient(), catalog, settings_store, lease)
        with pytest.raises(NotInitialized):
            auto.schedule_import()
        assert auto.get_next_scheduled() is None
