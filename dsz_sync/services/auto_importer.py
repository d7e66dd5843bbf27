"""
Auto importer — scheduled discovery and import of new supplier products.

Each run asks the supplier for a page of candidates (remote filters
applied), re-checks every filter locally, drops SKUs that already exist
in the catalog and imports up to max_products_per_run of the rest.
A heartbeat in the persisted state lets a crashed run be detected and
reset after the stale threshold. Every finished run is appended to a
capped history from which 7/30-day stats are derived.
Version: 1.0.0
"""
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from dsz_sync.core.constants.sync import (
    AUTO_IMPORT_EVENT,
    AUTO_IMPORT_FIRST_RUN_DELAY_SECONDS,
    AUTO_IMPORT_HISTORY_LIMIT,
    FREQUENCIES,
    FREQUENCY_SECONDS,
    MAX_PRODUCTS_PER_PAGE,
    OPTION_AUTO_IMPORT_HISTORY,
    OPTION_AUTO_IMPORT_SETTINGS,
    OPTION_AUTO_IMPORT_STATE,
    STALE_LOCK_SECONDS,
)
from dsz_sync.core.exceptions import AlreadyExists, DszSyncException, NotInitialized, ValidationError
from dsz_sync.schemas.state import AutoImportSettings, AutoImportState, ImportHistoryEntry
from dsz_sync.utils.record_fields import STOCK_FIELDS, first_value, get_sku, is_truthy_flag
from dsz_sync.utils.type_converters import to_int

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400

# setting name -> (remote query param, record fields checked locally)
REMOTE_FLAG_FILTERS = {
    "filter_new_arrival": ("new_arrival", ("new_arrival", "is_new_arrival")),
    "filter_in_stock": ("in_stock", ("in_stock",)),
    "filter_free_shipping": ("au_free_shipping", ("au_free_shipping", "freeshipping", "free_shipping")),
}


def _empty_results(status: str, message: str, errors: int = 0) -> Dict[str, Any]:
    return {"status": status, "message": message, "imported": 0, "skipped": 0, "errors": errors}


class AutoImporter:
    def __init__(
        self,
        importer,
        client,
        catalog,
        store,
        lease,
        scheduler=None,
        memory_guard=None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._importer = importer
        self._client = client
        self._catalog = catalog
        self._store = store
        self._lease = lease
        self._scheduler = scheduler
        self._memory = memory_guard
        self._clock = clock

    # ------------------------------------------------------------------
    # Settings and state
    # ------------------------------------------------------------------

    def get_settings(self) -> AutoImportSettings:
        data = self._store.get(OPTION_AUTO_IMPORT_SETTINGS, {}) or {}
        try:
            return AutoImportSettings.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Stored auto import settings invalid, using defaults: {e}")
            return AutoImportSettings()

    def save_settings(self, data: Dict[str, Any]) -> AutoImportSettings:
        merged = {**self.get_settings().model_dump(), **data}
        try:
            settings = AutoImportSettings.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid auto import settings: {e}") from e
        self._store.set(OPTION_AUTO_IMPORT_SETTINGS, settings.model_dump())
        logger.info(f"Auto import settings saved: enabled={settings.enabled}, frequency={settings.frequency}")
        return settings

    def _load_state(self) -> AutoImportState:
        data = self._store.get(OPTION_AUTO_IMPORT_STATE, {}) or {}
        try:
            return AutoImportState.model_validate(data)
        except PydanticValidationError:
            return AutoImportState()

    def _save_state(self, state: AutoImportState) -> None:
        self._store.set(OPTION_AUTO_IMPORT_STATE, state.model_dump())

    def _heartbeat(self, state: AutoImportState, sku: Optional[str], imported: int) -> None:
        state.last_update = self._clock()
        state.current_sku = sku
        state.imported_count = imported
        self._save_state(state)
        if state.run_id:
            self._lease.acquire(state.run_id)

    def reset_import_state(self) -> None:
        self._save_state(AutoImportState(in_progress=False, last_update=self._clock()))
        self._lease.force_release()
        logger.info("Auto import state reset")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run_import(self) -> Dict[str, Any]:
        settings = self.get_settings()
        if not settings.enabled:
            logger.info("Auto import is disabled, skipping")
            return _empty_results("skipped", "Auto import is disabled")

        state = self._load_state()
        if state.in_progress:
            if self._clock() - (state.last_update or 0) < STALE_LOCK_SECONDS:
                logger.warning("Auto import already in progress, skipping")
                return _empty_results("skipped", "Import already in progress")
            logger.warning(f"Stuck auto import detected (last_update={state.last_update}), resetting")
            self.reset_import_state()

        run_id = uuid.uuid4().hex
        if not self._lease.acquire(run_id):
            logger.warning("Auto import lease held by another run, skipping")
            return _empty_results("skipped", "Import already in progress")

        now = self._clock()
        state = AutoImportState(in_progress=True, last_update=now, started_at=now, run_id=run_id)
        self._save_state(state)
        logger.info(f"Starting auto import: run_id={run_id}, settings={settings.model_dump()}")

        try:
            candidates = self.fetch_candidates(settings)
        except DszSyncException as e:
            logger.error(f"Auto import fetch failed: {e.message}")
            results = _empty_results("error", e.message, errors=1)
            self.complete_import(results)
            return results

        if not candidates:
            results = _empty_results("complete", "No new products to import")
            self.complete_import(results)
            return results

        results = self._process(candidates, settings, state)
        self.complete_import(results)
        return results

    def _passes_filters(self, record: Dict[str, Any], settings: AutoImportSettings) -> bool:
        sku = get_sku(record)
        if not sku:
            return False

        stock_qty = to_int(first_value(record, STOCK_FIELDS), 0)
        if stock_qty < settings.min_stock_qty:
            logger.debug(f"Product skipped due to low stock: sku={sku}, stock={stock_qty}, min={settings.min_stock_qty}")
            return False

        for setting, (_, fields) in REMOTE_FLAG_FILTERS.items():
            if getattr(settings, setting) and not any(is_truthy_flag(record.get(f)) for f in fields):
                logger.debug(f"Product skipped by {setting}: sku={sku}")
                return False

        if settings.filter_category_ids:
            category_id = to_int(record.get("category_id"))
            if category_id is not None and category_id not in settings.filter_category_ids:
                return False

        return True

    def fetch_candidates(self, settings: AutoImportSettings) -> List[Dict[str, Any]]:
        """Fetch and locally filter import candidates, capped at max_products_per_run."""
        params: Dict[str, Any] = {
            "limit": min(settings.max_products_per_run * 2, MAX_PRODUCTS_PER_PAGE),
            "page_no": 1,
        }
        for setting, (param, _) in REMOTE_FLAG_FILTERS.items():
            if getattr(settings, setting):
                params[param] = True
        if settings.filter_category_ids:
            # supplier accepts a single category_id
            params["category_id"] = settings.filter_category_ids[0]

        logger.debug(f"Fetching products for auto import: {params}")
        response = self._client.get_products(params)
        records = (response or {}).get("result") or []

        candidates: List[Dict[str, Any]] = []
        for record in records:
            if not self._passes_filters(record, settings):
                continue
            if self._catalog.find_by_identifier(get_sku(record)):
                continue
            candidates.append(record)
            if len(candidates) >= settings.max_products_per_run:
                break

        logger.info(
            f"Products to import after filtering: api_total={len(records)}, to_import={len(candidates)}, "
            f"max_per_run={settings.max_products_per_run}"
        )
        return candidates

    def _process(self, candidates: List[Dict[str, Any]], settings: AutoImportSettings, state: AutoImportState) -> Dict[str, Any]:
        imported = skipped = errors = 0
        error_messages: List[str] = []

        for record in candidates:
            sku = get_sku(record)
            self._heartbeat(state, sku, imported)
            try:
                local_id = self._importer.import_product(record, status=settings.default_product_status)
                imported += 1
                logger.info(f"Product imported via auto import: sku={sku}, local_id={local_id}")
            except AlreadyExists:
                skipped += 1
                logger.debug(f"Product skipped (already exists): sku={sku}")
            except Exception as e:
                errors += 1
                message = e.message if isinstance(e, DszSyncException) else str(e)
                error_messages.append(f"{sku}: {message}")
                logger.error(f"Failed to import product: sku={sku}, error={message}")

            if self._memory is not None and self._memory.is_near_limit():
                logger.warning("Memory limit approaching, stopping import early")
                break

        return {
            "status": "complete",
            "message": f"Import complete: {imported} imported, {skipped} skipped, {errors} errors",
            "imported": imported,
            "skipped": skipped,
            "errors": errors,
            "error_messages": error_messages,
        }

    def complete_import(self, results: Dict[str, Any]) -> None:
        state = self._load_state()
        now = self._clock()
        self._save_state(AutoImportState(
            in_progress=False,
            last_update=now,
            last_completed=now,
            last_results=results,
        ))
        if state.run_id:
            self._lease.release(state.run_id)

        self._append_history(results)
        logger.info(
            f"Auto import completed: status={results.get('status')}, imported={results.get('imported', 0)}, "
            f"skipped={results.get('skipped', 0)}, errors={results.get('errors', 0)}"
        )

    # ------------------------------------------------------------------
    # History and stats
    # ------------------------------------------------------------------

    def _load_history(self) -> List[Dict[str, Any]]:
        return list(self._store.get(OPTION_AUTO_IMPORT_HISTORY, []) or [])

    def _append_history(self, results: Dict[str, Any]) -> None:
        entry = ImportHistoryEntry(
            timestamp=self._clock(),
            imported=results.get("imported", 0),
            skipped=results.get("skipped", 0),
            errors=results.get("errors", 0),
            status=results.get("status", "unknown"),
        )
        history = [entry.model_dump()] + self._load_history()
        self._store.set(OPTION_AUTO_IMPORT_HISTORY, history[:AUTO_IMPORT_HISTORY_LIMIT])

    def get_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self._load_history()[:limit]

    def clear_history(self) -> None:
        self._store.delete(OPTION_AUTO_IMPORT_HISTORY)
        logger.info("Auto import history cleared")

    def get_stats(self) -> Dict[str, Any]:
        history = self._load_history()
        now = self._clock()
        seven_days_ago = now - 7 * DAY_SECONDS
        thirty_days_ago = now - 30 * DAY_SECONDS

        stats = {
            "total_runs": len(history),
            "total_imported": 0,
            "total_skipped": 0,
            "total_errors": 0,
            "last_7_days": {"runs": 0, "imported": 0},
            "last_30_days": {"runs": 0, "imported": 0},
        }
        for entry in history:
            stats["total_imported"] += entry.get("imported", 0)
            stats["total_skipped"] += entry.get("skipped", 0)
            stats["total_errors"] += entry.get("errors", 0)
            timestamp = entry.get("timestamp", 0)
            if timestamp >= seven_days_ago:
                stats["last_7_days"]["runs"] += 1
                stats["last_7_days"]["imported"] += entry.get("imported", 0)
            if timestamp >= thirty_days_ago:
                stats["last_30_days"]["runs"] += 1
                stats["last_30_days"]["imported"] += entry.get("imported", 0)
        return stats

    def get_status(self) -> Dict[str, Any]:
        state = self._load_state()
        settings = self.get_settings()
        return {
            "enabled": settings.enabled,
            "in_progress": state.in_progress,
            "current_sku": state.current_sku,
            "imported_count": state.imported_count,
            "last_completed": state.last_completed,
            "last_results": state.last_results,
            "next_scheduled": self.get_next_scheduled(),
            "settings": settings.model_dump(),
        }

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_import(self, frequency: str = "daily") -> Optional[float]:
        if frequency not in FREQUENCIES:
            raise ValidationError(f"Unknown auto import frequency: {frequency}")
        if self._scheduler is None:
            raise NotInitialized("Scheduler not initialized")

        self._scheduler.clear(AUTO_IMPORT_EVENT)
        next_run = self._scheduler.schedule(
            AUTO_IMPORT_EVENT,
            FREQUENCY_SECONDS[frequency],
            self._clock() + AUTO_IMPORT_FIRST_RUN_DELAY_SECONDS,
        )
        logger.info(f"Auto import scheduled: frequency={frequency}")
        return next_run

    def unschedule_import(self) -> None:
        if self._scheduler is None:
            raise NotInitialized("Scheduler not initialized")
        self._scheduler.clear(AUTO_IMPORT_EVENT)
        logger.info("Auto import unscheduled")

    def get_next_scheduled(self) -> Optional[float]:
        if self._scheduler is None:
            return None
        return self._scheduler.next_run(AUTO_IMPORT_EVENT)
