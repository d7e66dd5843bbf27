"""
Sync coordinator — resumable, paginated price/stock reconciliation.

One batch step reads a page of sync-enabled mappings, fetches the
matching supplier records in sequential chunks, applies the price and
stock engines to each local product and advances a persisted offset.
Between steps the run is idle in the settings store; the next step is
triggered by the scheduler, so no long-lived process is required.

Mutual exclusion uses a TTL lease keyed by run id. A run whose heartbeat
(last_batch_time) is older than the stale threshold is reset by the next
caller that observes it.
Version: 1.0.0
"""
import logging
import math
import time
import uuid
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from dsz_sync.core.constants.sync import (
    BATCH_CONTINUE_DELAY_SECONDS,
    FREQUENCIES,
    FREQUENCY_SECONDS,
    OPTION_SYNC_STATE,
    STALE_LOCK_SECONDS,
    STATUS_DRAFT,
    STATUS_PUBLISH,
    STOCK_STATUS_OUT,
    SYNC_CONTINUE_EVENT,
    SYNC_EVENT,
)
from dsz_sync.core.exceptions import DszSyncException, NotInitialized, ValidationError
from dsz_sync.schemas.state import Mapping, SyncState
from dsz_sync.services.price_engine import PriceEngine
from dsz_sync.services.stock_engine import StockEngine
from dsz_sync.utils.batch_grouping import fetch_supplier_index
from dsz_sync.utils.record_fields import COST_FIELDS, SPECIAL_PRICE_FIELDS, first_value
from dsz_sync.utils.type_converters import to_float, to_int, to_positive_float

logger = logging.getLogger(__name__)


def progress_percent(offset: int, total: int) -> int:
    """round(offset / total * 100), half up, capped at 100."""
    if total <= 0:
        return 0
    return min(100, int(math.floor(offset / total * 100 + 0.5)))


def apply_price(product, record: Dict[str, Any], engine: PriceEngine) -> bool:
    """Set regular/sale price fields from record. Returns True if anything changed."""
    sku = record.get("sku")
    cost = to_float(first_value(record, COST_FIELDS))
    if cost is None or cost <= 0:
        logger.debug(f"Skipping price for {sku}: invalid supplier price {cost}")
        return False

    regular = engine.calculate(cost)
    special = to_positive_float(first_value(record, SPECIAL_PRICE_FIELDS))
    sale = engine.calculate(special) if special is not None and special < cost else None

    current_regular = product.get("regular_price")
    current_sale = product.get("sale_price")

    changed = engine.needs_update(current_regular, regular)
    if sale is not None:
        changed = changed or current_sale is None or engine.needs_update(current_sale, sale)
    else:
        changed = changed or current_sale not in (None, "")

    if not changed:
        return False

    product.set("regular_price", regular)
    if sale is not None:
        product.set("sale_price", sale)
        if record.get("special_price_from_date"):
            product.set("sale_price_from", record["special_price_from_date"])
        if record.get("special_price_end_date"):
            product.set("sale_price_to", record["special_price_end_date"])
    else:
        product.set("sale_price", None)
        product.set("sale_price_from", None)
        product.set("sale_price_to", None)

    logger.info(
        f"Price updated: sku={sku}, local_id={product.id}, old={current_regular}, "
        f"new={regular}, sale={sale}"
    )
    return True


def apply_stock(product, record: Dict[str, Any], engine: StockEngine) -> bool:
    """Set stock quantity/status from record. Returns True if anything changed."""
    rules = engine.rules
    final_qty = engine.final_quantity(record)
    new_status = engine.derive_status(final_qty)

    current_qty = to_int(product.get("stock_qty"))
    current_status = product.get("stock_status")

    qty_changed = current_qty != final_qty
    status_changed = rules.auto_out_of_stock and current_status != new_status
    republish = rules.republish_on_restock and final_qty > 0 and product.get("status") == STATUS_DRAFT

    if not (qty_changed or status_changed or republish):
        return False

    product.set("manage_stock", True)
    product.set("stock_qty", final_qty)
    if rules.auto_out_of_stock:
        product.set("stock_status", new_status)
    if republish:
        product.set("status", STATUS_PUBLISH)
        logger.info(f"Product republished on restock: sku={record.get('sku')}, local_id={product.id}")

    logger.info(
        f"Stock updated: sku={record.get('sku')}, local_id={product.id}, "
        f"old={current_qty}, new={final_qty}, status={new_status}"
    )
    return True


def apply_supplier_record(product, record: Dict[str, Any], price_engine: PriceEngine, stock_engine: StockEngine) -> Dict[str, bool]:
    """Apply price and stock rules to product in place. Does not save."""
    return {
        "price_changed": apply_price(product, record, price_engine),
        "stock_changed": apply_stock(product, record, stock_engine),
    }


class SyncCoordinator:
    def __init__(
        self,
        client,
        mapper,
        catalog,
        price_engine: PriceEngine,
        stock_engine: StockEngine,
        store,
        lease,
        scheduler=None,
        memory_guard=None,
        clock: Callable[[], float] = time.time,
        batch_size: Optional[int] = None,
    ) -> None:
        self._client = client
        self._mapper = mapper
        self._catalog = catalog
        self._price = price_engine
        self._stock = stock_engine
        self._store = store
        self._lease = lease
        self._scheduler = scheduler
        self._memory = memory_guard
        self._clock = clock
        self._batch_size = batch_size

    # ------------------------------------------------------------------
    # Persisted state
    # ------------------------------------------------------------------

    def _load_state(self) -> SyncState:
        data = self._store.get(OPTION_SYNC_STATE, {}) or {}
        try:
            return SyncState.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Stored sync state invalid, starting fresh: {e}")
            return SyncState()

    def _save_state(self, state: SyncState) -> None:
        self._store.set(OPTION_SYNC_STATE, state.model_dump())

    def _is_stale(self, state: SyncState) -> bool:
        heartbeat = state.last_batch_time or 0
        return self._clock() - heartbeat >= STALE_LOCK_SECONDS

    def _require_collaborators(self) -> None:
        if self._mapper is None or self._catalog is None:
            raise NotInitialized("Product mapper or catalog not initialized")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_scheduled_sync(self) -> Dict[str, Any]:
        logger.info("Scheduled sync started")
        return self.run_sync(is_manual=False)

    def manual_sync(self) -> Dict[str, Any]:
        """Start a run now. A live run is left alone; a stale one is reset."""
        logger.info("Manual sync triggered")
        return self.run_sync(is_manual=True)

    def run_sync(self, is_manual: bool = False) -> Dict[str, Any]:
        """Transition idle -> in_progress and run the first batch step."""
        self._require_collaborators()

        state = self._load_state()
        if state.in_progress:
            if not self._is_stale(state):
                logger.warning(f"Sync already in progress, skipping (run_id={state.run_id})")
                return {"status": "skipped", "message": "Sync already in progress"}
            logger.warning(
                f"Stale sync detected (run_id={state.run_id}, last_batch_time={state.last_batch_time}), resetting"
            )
            self.reset_sync_state()
            state = self._load_state()

        run_id = uuid.uuid4().hex
        if not self._lease.acquire(run_id):
            logger.warning("Sync lease held by another run, skipping")
            return {"status": "skipped", "message": "Sync already in progress"}

        state.in_progress = True
        state.run_id = run_id
        state.current_offset = 0
        state.products_updated = 0
        state.errors_count = 0
        state.last_error = None
        state.last_batch_time = self._clock()
        if self._batch_size:
            state.batch_size = self._batch_size
        self._save_state(state)

        logger.info(f"Sync started: run_id={run_id}, manual={is_manual}, batch_size={state.batch_size}")
        return self._process_batch(state)

    def continue_batch(self) -> Dict[str, Any]:
        """Run the next batch step of the current run, if any."""
        state = self._load_state()
        if not state.in_progress:
            return {"status": "complete", "message": "Sync not in progress"}

        self._require_collaborators()

        if not state.run_id or not self._lease.acquire(state.run_id):
            logger.warning(f"Sync lease not held by run {state.run_id}, not continuing")
            return {"status": "skipped", "message": "Sync lease held by another run"}

        return self._process_batch(state)

    # ------------------------------------------------------------------
    # Batch step
    # ------------------------------------------------------------------

    def _process_batch(self, state: SyncState) -> Dict[str, Any]:
        self._price.reload()
        self._stock.reload()

        total = self._mapper.get_syncable_count()
        if total == 0:
            logger.info("No mapped products to sync")
            return self._complete(state, "No mapped products to sync")

        page = self._mapper.get_mapped_for_sync(state.batch_size, state.current_offset)
        if not page:
            return self._complete(state, "Sync completed")

        skus = [m.supplier_sku.strip() for m in page if m.supplier_sku and m.supplier_sku.strip()]
        try:
            index = fetch_supplier_index(self._client, skus)
        except DszSyncException as e:
            logger.error(
                f"Failed to fetch supplier products for sync: offset={state.current_offset}, error={e.message}"
            )
            state.last_error = e.message
            return self._complete(state, e.message, status="error")

        counts = {"updated": 0, "skipped": 0, "not_found": 0, "deactivated": 0, "errors": 0}
        visited = 0
        for mapping in page:
            visited += 1
            self._sync_mapping(mapping, index, counts)

            if self._memory is not None and self._memory.is_near_limit():
                logger.warning(
                    f"Memory limit approaching, stopping batch early: processed={visited}/{len(page)}"
                )
                break

        state.current_offset += visited
        state.products_updated += counts["updated"] + counts["deactivated"]
        state.errors_count += counts["errors"]
        state.total_products = total
        state.last_batch_time = self._clock()

        logger.info(
            f"Batch processed: offset={state.current_offset}/{total}, updated={counts['updated']}, "
            f"skipped={counts['skipped']}, not_found={counts['not_found']}, errors={counts['errors']}"
        )

        if state.current_offset >= total:
            result = self._complete(state, "Sync completed")
            result["batch"] = counts
            return result

        self._save_state(state)
        self._lease.acquire(state.run_id)

        if self._scheduler is not None:
            self._scheduler.schedule_single(SYNC_CONTINUE_EVENT, BATCH_CONTINUE_DELAY_SECONDS)

        return {
            "status": "processing",
            "message": f"Processed {state.current_offset} of {total} mapped products",
            "progress": progress_percent(state.current_offset, total),
            "current_offset": state.current_offset,
            "total_products": total,
            "batch": counts,
        }

    def _sync_mapping(self, mapping: Mapping, index: Dict[str, Dict[str, Any]], counts: Dict[str, int]) -> None:
        sku = (mapping.supplier_sku or "").strip()
        local_id = mapping.local_id
        try:
            record = index.get(sku)
            if record is None:
                counts["not_found"] += 1
                logger.warning(f"SKU not found in supplier API: sku={sku}, local_id={local_id}")
                if self._stock.rules.deactivate_if_not_found:
                    if self.deactivate_product(local_id):
                        counts["deactivated"] += 1
                    # stamped so the record is not re-checked every cycle
                    self._mapper.update_last_synced(local_id)
                return

            product = self._catalog.load(local_id)
            if product is None:
                counts["errors"] += 1
                logger.error(f"Mapped local product missing: local_id={local_id}, sku={sku}")
                return

            changes = self.apply_supplier_record(product, record)
            if changes["price_changed"] or changes["stock_changed"]:
                product.save()
                counts["updated"] += 1
            else:
                counts["skipped"] += 1

            self._mapper.update_last_synced(local_id)
        except Exception as e:
            counts["errors"] += 1
            logger.error(f"Sync error: sku={sku}, local_id={local_id}, error={e}")

    def _complete(self, state: SyncState, message: str, status: str = "complete") -> Dict[str, Any]:
        run_id = state.run_id

        state.last_products_updated = state.products_updated
        state.last_errors_count = state.errors_count
        state.in_progress = False
        state.current_offset = 0
        state.last_sync = self._clock()
        state.last_batch_time = None
        state.products_updated = 0
        state.errors_count = 0
        state.run_id = None
        self._save_state(state)

        if run_id:
            self._lease.release(run_id)

        logger.info(
            f"Sync {status}: {message} (updated={state.last_products_updated}, "
            f"errors={state.last_errors_count})"
        )
        return {
            "status": status,
            "message": message,
            "progress": 100,
            "products_updated": state.last_products_updated,
            "errors_count": state.last_errors_count,
        }

    # ------------------------------------------------------------------
    # Per-record apply (shared with product resync)
    # ------------------------------------------------------------------

    def apply_supplier_record(self, product, record: Dict[str, Any]) -> Dict[str, bool]:
        return apply_supplier_record(product, record, self._price, self._stock)

    def deactivate_product(self, local_id: int) -> bool:
        """Set a published product to draft with zero stock. Returns True if changed."""
        product = self._catalog.load(local_id)
        if product is None:
            return False

        if product.get("status") != STATUS_PUBLISH:
            logger.debug(f"Product {local_id} already inactive, not deactivating")
            return False

        product.set("status", STATUS_DRAFT)
        product.set("stock_qty", 0)
        product.set("stock_status", STOCK_STATUS_OUT)
        product.save()

        logger.warning(
            f"Product deactivated - not found in supplier API: local_id={local_id}, name={product.get('name')}"
        )
        return True

    # ------------------------------------------------------------------
    # Status and control
    # ------------------------------------------------------------------

    def reset_sync_state(self) -> None:
        state = self._load_state()
        state.in_progress = False
        state.current_offset = 0
        state.last_batch_time = None
        state.run_id = None
        self._save_state(state)
        self._lease.force_release()
        logger.info("Sync state reset")

    def get_progress(self) -> int:
        state = self._load_state()
        if not state.in_progress:
            return 100
        return progress_percent(state.current_offset, state.total_products)

    def get_sync_status(self) -> Dict[str, Any]:
        state = self._load_state()
        return {
            "in_progress": state.in_progress,
            "is_stale": state.in_progress and self._is_stale(state),
            "last_sync": state.last_sync,
            "next_scheduled": self.get_next_scheduled(),
            "current_offset": state.current_offset,
            "total_products": state.total_products,
            "products_updated": state.products_updated,
            "errors_count": state.errors_count,
            "last_products_updated": state.last_products_updated,
            "last_errors_count": state.last_errors_count,
            "last_error": state.last_error,
            "frequency": state.frequency,
            "batch_size": state.batch_size,
            "progress": self.get_progress(),
        }

    def get_frequencies(self) -> Dict[str, str]:
        return dict(FREQUENCIES)

    def _require_scheduler(self):
        if self._scheduler is None:
            raise NotInitialized("Scheduler not initialized")
        return self._scheduler

    def schedule_sync(self, frequency: str = "hourly") -> Optional[float]:
        if frequency not in FREQUENCIES:
            raise ValidationError(f"Unknown sync frequency: {frequency}")

        scheduler = self._require_scheduler()
        scheduler.clear(SYNC_EVENT)
        next_run = scheduler.schedule(SYNC_EVENT, FREQUENCY_SECONDS[frequency], self._clock())

        state = self._load_state()
        state.frequency = frequency
        self._save_state(state)

        logger.info(f"Sync scheduled: frequency={frequency}")
        return next_run

    def unschedule_sync(self) -> None:
        self._require_scheduler().clear(SYNC_EVENT)
        logger.info("Sync unscheduled")

    def get_next_scheduled(self) -> Optional[float]:
        if self._scheduler is None:
            return None
        return self._scheduler.next_run(SYNC_EVENT)
