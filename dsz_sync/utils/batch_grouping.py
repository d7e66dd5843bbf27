"""
Batch grouping — chunk SKUs for supplier lookups and merge the results.

Fetch stage of a batch step: chunk -> fetch (sequential) -> merge into a
SKU-keyed index. Chunks are fetched one at a time so every call passes
through the rate limiter in order.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, Iterable, List

from dsz_sync.core.constants.sync import MAX_SKUS_PER_API_CALL

logger = logging.getLogger("batch_grouping")


def chunk_skus(skus: List[str], size: int = MAX_SKUS_PER_API_CALL) -> List[List[str]]:
    """Split skus into consecutive chunks of at most size."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [skus[i:i + size] for i in range(0, len(skus), size)]


def merge_into_index(index: Dict[str, Dict[str, Any]], records: Iterable[Dict[str, Any]]) -> int:
    """Add records to index keyed by stripped SKU. Returns records added."""
    added = 0
    for record in records or []:
        if not isinstance(record, dict):
            continue
        sku = str(record.get("sku") or "").strip()
        if not sku:
            continue
        index[sku] = record
        added += 1
    return added


def fetch_supplier_index(client, skus: List[str], chunk_size: int = MAX_SKUS_PER_API_CALL) -> Dict[str, Dict[str, Any]]:
    """
    Fetch supplier records for skus and index them by SKU.

    Any client error propagates to the caller; no partial index is returned.
    """
    index: Dict[str, Dict[str, Any]] = {}
    chunks = chunk_skus(skus, chunk_size)

    for n, chunk in enumerate(chunks, start=1):
        response = client.get_products_by_skus(chunk)
        records = response.get("result") if isinstance(response, dict) else None
        added = merge_into_index(index, records or [])
        logger.debug(f"Fetched chunk {n}/{len(chunks)}: requested={len(chunk)}, found={added}")

    logger.info(f"Supplier index built: {len(index)} of {len(skus)} SKUs found in {len(chunks)} calls")
    return index
