"""
Lazy DI container — singleton access to clients, stores, and services.

Works in both FastAPI and Celery worker contexts. Celery tasks resolve
their dependencies here after fork, so each worker builds its own
connections. Import individual getters to avoid circular imports.
Version: 1.0.0
"""

from functools import lru_cache

from dsz_sync.core.config import settings
from dsz_sync.core.constants.sync import (
    AUTO_IMPORT_EVENT,
    AUTO_IMPORT_LEASE_NAME,
    SYNC_CONTINUE_EVENT,
    SYNC_EVENT,
    SYNC_LEASE_NAME,
)
from dsz_sync.clients.dsz_client import DszClient
from dsz_sync.clients.supabase_client import SupabaseClient
from dsz_sync.db.catalog_store import CatalogStore
from dsz_sync.db.category_store import CategoryStore
from dsz_sync.db.media_store import MediaStore
from dsz_sync.db.order_store import OrderStore
from dsz_sync.db.product_mapper import ProductMapper
from dsz_sync.db.rule_store import RuleStore
from dsz_sync.db.settings_store import RedisSettingsStore
from dsz_sync.services.auto_importer import AutoImporter
from dsz_sync.services.order_submission import OrderSubmission
from dsz_sync.services.price_engine import PriceEngine
from dsz_sync.services.product_importer import ProductImporter
from dsz_sync.services.scheduler import Scheduler
from dsz_sync.services.stock_engine import StockEngine
from dsz_sync.services.sync_coordinator import SyncCoordinator
from dsz_sync.utils.memory_guard import MemoryGuard
from dsz_sync.utils.rate_limiter import get_rate_limiter
from dsz_sync.utils.sync_lease import SyncLease


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings_store():
    return RedisSettingsStore()


@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings)


@lru_cache(maxsize=1)
def get_dsz_client():
    return DszClient(settings, get_settings_store(), get_rate_limiter())


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_rule_store():
    return RuleStore(get_settings_store())


@lru_cache(maxsize=1)
def get_catalog_store():
    return CatalogStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_product_mapper():
    return ProductMapper(get_supabase_client(), catalog=get_catalog_store())


@lru_cache(maxsize=1)
def get_media_store():
    return MediaStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_category_store():
    return CategoryStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_order_store():
    return OrderStore(get_supabase_client())


# -- Engines / utilities ---------------------------------------------------

@lru_cache(maxsize=1)
def get_price_engine():
    return PriceEngine(loader=get_rule_store().load_price_rules)


@lru_cache(maxsize=1)
def get_stock_engine():
    return StockEngine(loader=get_rule_store().load_stock_rules)


@lru_cache(maxsize=1)
def get_memory_guard():
    return MemoryGuard(
        threshold_percent=settings.memory_threshold_percent,
        limit_bytes=settings.memory_limit_bytes,
    )


@lru_cache(maxsize=None)
def get_lease(name: str):
    return SyncLease(name=name)


def _dispatch_event(event_name: str, delay: float) -> None:
    # Lazy import: the task module imports this container
    from dsz_sync.celery_app.tasks.scheduler import run_event

    run_event.apply_async(args=[event_name], countdown=max(0, int(delay)))


@lru_cache(maxsize=1)
def get_scheduler():
    scheduler = Scheduler(get_settings_store(), _dispatch_event)
    scheduler.register(SYNC_EVENT, lambda: get_sync_coordinator().run_scheduled_sync())
    scheduler.register(SYNC_CONTINUE_EVENT, lambda: get_sync_coordinator().continue_batch())
    scheduler.register(AUTO_IMPORT_EVENT, lambda: get_auto_importer().run_import())
    return scheduler


# -- Services --------------------------------------------------------------

@lru_cache(maxsize=1)
def get_sync_coordinator():
    return SyncCoordinator(
        client=get_dsz_client(),
        mapper=get_product_mapper(),
        catalog=get_catalog_store(),
        price_engine=get_price_engine(),
        stock_engine=get_stock_engine(),
        store=get_settings_store(),
        lease=get_lease(SYNC_LEASE_NAME),
        scheduler=get_scheduler(),
        memory_guard=get_memory_guard(),
        batch_size=settings.sync_batch_size,
    )


@lru_cache(maxsize=1)
def get_product_importer():
    return ProductImporter(
        client=get_dsz_client(),
        catalog=get_catalog_store(),
        mapper=get_product_mapper(),
        price_engine=get_price_engine(),
        stock_engine=get_stock_engine(),
        media=get_media_store(),
        categories=get_category_store(),
        store=get_settings_store(),
    )


@lru_cache(maxsize=1)
def get_auto_importer():
    return AutoImporter(
        importer=get_product_importer(),
        client=get_dsz_client(),
        catalog=get_catalog_store(),
        store=get_settings_store(),
        lease=get_lease(AUTO_IMPORT_LEASE_NAME),
        scheduler=get_scheduler(),
        memory_guard=get_memory_guard(),
    )


@lru_cache(maxsize=1)
def get_order_submission():
    return OrderSubmission(
        client=get_dsz_client(),
        mapper=get_product_mapper(),
        orders=get_order_store(),
    )
