"""
Product importer — create and refresh local catalog products from supplier records.

import_product() builds a new catalog entry (text fields, price, stock,
dimensions, categories, images) and maps it to its supplier SKU.
resync_product() refreshes an existing entry; each part of the refresh
is gated by ResyncOptions. Categories and images are best-effort: a
failure there is logged and never fails the import.
Version: 1.0.0
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from dsz_sync.core.constants.sync import OPTION_IMPORT_SETTINGS
from dsz_sync.core.exceptions import (
    AlreadyExists,
    DszSyncException,
    ProductNotFound,
    SaveFailed,
    ValidationError,
)
from dsz_sync.schemas.state import ImportSettings, ResyncOptions
from dsz_sync.services.price_engine import PriceEngine
from dsz_sync.services.stock_engine import StockEngine
from dsz_sync.services.sync_coordinator import apply_price, apply_stock
from dsz_sync.utils.batch_grouping import fetch_supplier_index
from dsz_sync.utils.record_fields import (
    DESCRIPTION_FIELDS,
    SHORT_DESCRIPTION_FIELDS,
    TITLE_FIELDS,
    category_path,
    dimensions,
    first_value,
    get_sku,
    image_urls,
)

logger = logging.getLogger(__name__)

MAX_ERROR_DETAILS = 10


class ProductImporter:
    def __init__(
        self,
        client,
        catalog,
        mapper,
        price_engine: PriceEngine,
        stock_engine: StockEngine,
        media,
        categories,
        store,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self._mapper = mapper
        self._price = price_engine
        self._stock = stock_engine
        self._media = media
        self._categories = categories
        self._store = store
        self._clock = clock

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_import_settings(self) -> ImportSettings:
        data = self._store.get(OPTION_IMPORT_SETTINGS, {}) or {}
        try:
            return ImportSettings.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Stored import settings invalid, using defaults: {e}")
            return ImportSettings()

    def save_import_settings(self, data: Dict[str, Any]) -> ImportSettings:
        merged = {**self.get_import_settings().model_dump(), **data}
        try:
            settings = ImportSettings.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid import settings: {e}") from e
        self._store.set(OPTION_IMPORT_SETTINGS, settings.model_dump())
        return settings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()

    def fetch_record(self, sku: str) -> Dict[str, Any]:
        """Fetch one supplier record by SKU, or raise ProductNotFound."""
        sku = (sku or "").strip()
        response = self._client.get_products_by_skus([sku])
        records = (response or {}).get("result") or []
        for record in records:
            if get_sku(record) == sku:
                return record
        if records:
            return records[0]
        raise ProductNotFound(f"Product with SKU {sku} not found in Dropshipzone API.")

    def _assign_categories(self, product, record: Dict[str, Any]) -> None:
        path = category_path(record)
        if not path:
            return
        try:
            ids = self._categories.ensure_category_path(path)
        except DszSyncException as e:
            logger.warning(f"Category assignment failed: sku={record.get('sku')}, path={path}, error={e.message}")
            return
        if ids:
            product.set("category_ids", ids)

    def _attach_images(self, local_id: int, record: Dict[str, Any]) -> int:
        """Attach primary image and gallery. Returns the number attached."""
        attached = 0
        for position, url in enumerate(image_urls(record)):
            try:
                self._media.attach_image(url, local_id, is_primary=position == 0)
                attached += 1
            except DszSyncException as e:
                logger.warning(f"Image attach failed: local_id={local_id}, url={url}, error={e.message}")
        return attached

    def _set_text_fields(self, product, record: Dict[str, Any], include_title: bool, include_description: bool) -> None:
        if include_title:
            name = first_value(record, TITLE_FIELDS)
            if name:
                product.set("name", str(name).strip())
        if include_description:
            product.set("description", first_value(record, DESCRIPTION_FIELDS, ""))
            product.set("short_description", first_value(record, SHORT_DESCRIPTION_FIELDS, ""))

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_product(self, data: Union[str, Dict[str, Any]], status: Optional[str] = None) -> int:
        """
        Create a local product from a supplier record (or a SKU to fetch).

        Args:
            data: Supplier record, or a SKU string
            status: Catalog status override; defaults to import settings

        Returns:
            The new local product id

        Raises:
            ProductNotFound: SKU not found at the supplier
            ValidationError: record has no SKU
            AlreadyExists: a local product with this SKU exists
            SaveFailed: the catalog did not return an id
        """
        if isinstance(data, str):
            data = self.fetch_record(data)

        sku = get_sku(data)
        if not sku:
            raise ValidationError("Product data is missing SKU.")

        existing_id = self._catalog.find_by_identifier(sku)
        if existing_id:
            raise AlreadyExists(f"Product with SKU {sku} already exists (ID: {existing_id}).")

        logger.info(f"Starting product import: sku={sku}")

        name = str(first_value(data, TITLE_FIELDS, sku)).strip()
        product = self._catalog.new_product()
        product.set("sku", sku)
        product.set("name", name)
        self._set_text_fields(product, data, include_title=False, include_description=True)

        if not apply_price(product, data, self._price):
            logger.warning(f"Imported product has no valid supplier price: sku={sku}")
        apply_stock(product, data, self._stock)
        final_qty = product.get("stock_qty", 0)
        product.set("manage_stock", True)
        product.set("stock_status", self._stock.derive_status(final_qty))
        product.set("status", status or self.get_import_settings().default_status)

        for field, value in dimensions(data).items():
            product.set(field, value)

        self._assign_categories(product, data)
        product.set_meta("dsz_imported_at", self._now_iso())

        product_id = product.save()
        if not product_id:
            logger.error(f"Failed to create catalog product: sku={sku}")
            raise SaveFailed("Failed to save catalog product.")

        images = self._attach_images(product_id, data)
        self._mapper.map(product_id, sku, name)

        logger.info(
            f"Product imported: sku={sku}, local_id={product_id}, price={product.get('regular_price')}, "
            f"stock={final_qty}, images={images}"
        )
        return product_id

    def import_products(self, skus: List[str], status: Optional[str] = None) -> Dict[str, Any]:
        """Import many SKUs; supplier lookups are chunked."""
        skus = [s.strip() for s in skus if s and s.strip()]
        results: Dict[str, Any] = {"imported": 0, "skipped": 0, "errors": 0, "error_messages": []}
        if not skus:
            return results

        self._price.reload()
        self._stock.reload()
        index = fetch_supplier_index(self._client, skus)

        for sku in skus:
            record = index.get(sku)
            if record is None:
                results["errors"] += 1
                results["error_messages"].append(f"{sku}: not found in Dropshipzone API")
                continue
            try:
                self.import_product(record, status=status)
                results["imported"] += 1
            except AlreadyExists:
                results["skipped"] += 1
            except Exception as e:
                message = e.message if isinstance(e, DszSyncException) else str(e)
                results["errors"] += 1
                results["error_messages"].append(f"{sku}: {message}")
                logger.error(f"Bulk import failed: sku={sku}, error={message}")

        logger.info(
            f"Bulk import finished: imported={results['imported']}, skipped={results['skipped']}, "
            f"errors={results['errors']}"
        )
        return results

    # ------------------------------------------------------------------
    # Resync
    # ------------------------------------------------------------------

    def resync_product(
        self,
        local_id: int,
        record: Optional[Dict[str, Any]] = None,
        options: Optional[ResyncOptions] = None,
    ) -> int:
        """
        Refresh an existing product from its supplier record.

        Images are fully replaced (old media deleted first) when enabled.
        """
        options = options or ResyncOptions()

        product = self._catalog.load(local_id)
        if product is None:
            raise ProductNotFound(f"Local product {local_id} not found.")

        if record is None:
            sku = (product.get("sku") or "").strip() or self._mapper.get_supplier_sku(local_id)
            if not sku:
                raise ValidationError(f"Product {local_id} has no supplier SKU.")
            record = self.fetch_record(sku)

        sku = get_sku(record)
        logger.info(f"Resyncing product: local_id={local_id}, sku={sku}")

        self._set_text_fields(product, record, options.update_title, options.update_description)
        if options.update_price:
            apply_price(product, record, self._price)
        if options.update_stock:
            apply_stock(product, record, self._stock)
        if options.update_categories:
            self._assign_categories(product, record)

        product.set_meta("dsz_last_resynced", self._now_iso())
        if not product.save():
            raise SaveFailed(f"Failed to save product {local_id}.")

        if options.update_images:
            urls = image_urls(record)
            if urls:
                try:
                    self._media.delete_media(self._media.get_media_ids(local_id))
                except DszSyncException as e:
                    logger.warning(f"Old media delete failed: local_id={local_id}, error={e.message}")
                self._attach_images(local_id, record)

        if sku and self._mapper.get_by_local_id(local_id) is None:
            self._mapper.map(local_id, sku, str(first_value(record, TITLE_FIELDS, "")))

        return local_id

    def resync_all(self, limit: int = 1000, options: Optional[ResyncOptions] = None) -> Dict[str, Any]:
        """Resync every mapped product (up to limit)."""
        mappings = self._mapper.get_mappings(limit=limit)
        results: Dict[str, Any] = {"total": len(mappings), "success": 0, "errors": 0, "error_details": []}
        if not mappings:
            return results

        self._price.reload()
        self._stock.reload()
        index = fetch_supplier_index(self._client, [m.supplier_sku.strip() for m in mappings])

        for mapping in mappings:
            record = index.get(mapping.supplier_sku.strip())
            try:
                if record is None:
                    raise ProductNotFound(f"SKU {mapping.supplier_sku} not found in Dropshipzone API.")
                self.resync_product(mapping.local_id, record, options)
                results["success"] += 1
            except Exception as e:
                message = e.message if isinstance(e, DszSyncException) else str(e)
                results["errors"] += 1
                results["error_details"].append({
                    "local_id": mapping.local_id,
                    "sku": mapping.supplier_sku,
                    "error": message,
                })
                logger.error(f"Resync failed: local_id={mapping.local_id}, sku={mapping.supplier_sku}, error={message}")

        results["error_details"] = results["error_details"][:MAX_ERROR_DETAILS]
        logger.info(f"Resync all finished: total={results['total']}, success={results['success']}, errors={results['errors']}")
        return results
