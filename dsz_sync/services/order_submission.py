"""
Order submission — forward local orders to Dropshipzone.

Only order lines whose product is mapped to a supplier SKU are sent.
Every attempt leaves a dsz_orders record (serial or error) and an order
note; failures are re-raised to the caller and never retried here.
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dsz_sync.core.constants.sync import DSZ_ORDER_ERROR, DSZ_ORDER_NOT_SUBMITTED
from dsz_sync.core.exceptions import AlreadySubmitted, DszSyncException, NoMappedItems, OrderNotFound
from dsz_sync.utils.type_converters import to_int

logger = logging.getLogger(__name__)

AU_STATES = {
    "ACT": "Australian Capital Territory",
    "NSW": "New South Wales",
    "NT": "Northern Territory",
    "QLD": "Queensland",
    "SA": "South Australia",
    "TAS": "Tasmania",
    "VIC": "Victoria",
    "WA": "Western Australia",
}


def map_state(code: str) -> str:
    """Full state name for an AU state code; unknown values pass through."""
    return AU_STATES.get((code or "").strip().upper(), code or "")


class OrderSubmission:
    def __init__(self, client, mapper, orders) -> None:
        self._client = client
        self._mapper = mapper
        self._orders = orders

    def get_dsz_order_items(self, order: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Order lines mapped to supplier SKUs, as [{sku, qty}]."""
        items: List[Dict[str, Any]] = []
        for line in order.get("items") or []:
            # variation mapping wins over the parent product
            candidates = [line.get("variation_id"), line.get("product_id")]
            sku = None
            for local_id in candidates:
                if local_id:
                    sku = self._mapper.get_supplier_sku(int(local_id))
                    if sku:
                        break
            if not sku:
                continue
            items.append({"sku": sku, "qty": to_int(line.get("quantity"), 1)})
        return items

    def map_order_data(self, order: Dict[str, Any], items: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        billing = order.get("billing") or {}
        shipping = order.get("shipping") or {}
        address = shipping if shipping.get("address_1") else billing

        return {
            "your_order_no": str(order.get("id")),
            "first_name": address.get("first_name", ""),
            "last_name": address.get("last_name", ""),
            "address1": address.get("address_1", ""),
            "address2": address.get("address_2", ""),
            "suburb": address.get("city", ""),
            "state": map_state(address.get("state", "")),
            "postcode": address.get("postcode", ""),
            "telephone": billing.get("phone", ""),
            "comment": order.get("customer_note") or "",
            "order_items": items if items is not None else self.get_dsz_order_items(order),
        }

    def order_has_dsz_products(self, order_id: int) -> bool:
        order = self._orders.load_order(order_id)
        if not order:
            return False
        return bool(self.get_dsz_order_items(order))

    def get_dsz_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        return self._orders.get_dsz_order(order_id)

    def list_dsz_orders(self, limit: int = 50, offset: int = 0, status: str = "") -> List[Dict[str, Any]]:
        return self._orders.list_dsz_orders(limit=limit, offset=offset, status=status)

    def submit_order(self, order_id: int) -> Dict[str, Any]:
        """
        Submit a local order to Dropshipzone.

        Raises:
            OrderNotFound: no local order with this id
            AlreadySubmitted: a serial number is already recorded
            NoMappedItems: no order line maps to a supplier SKU
            DszSyncException: the supplier call failed (recorded, then re-raised)
        """
        order = self._orders.load_order(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        existing = self._orders.get_dsz_order(order_id)
        if existing and existing.get("serial_number"):
            raise AlreadySubmitted(
                f"Order already submitted to Dropshipzone (Serial: {existing['serial_number']})"
            )

        items = self.get_dsz_order_items(order)
        if not items:
            raise NoMappedItems()

        payload = self.map_order_data(order, items)
        logger.info(f"Submitting order to Dropshipzone: order_id={order_id}, items={len(items)}")

        try:
            result = self._client.place_order(payload)
        except DszSyncException as e:
            logger.error(f"Order submission failed: order_id={order_id}, error={e.message}")
            self._orders.save_dsz_order(order_id, "", DSZ_ORDER_ERROR, e.message)
            self._orders.add_order_note(order_id, f"Dropshipzone submission failed: {e.message}")
            raise

        serial_number = str((result or {}).get("serial_number") or "")
        self._orders.save_dsz_order(order_id, serial_number, DSZ_ORDER_NOT_SUBMITTED)
        self._orders.add_order_note(
            order_id,
            f"Order submitted to Dropshipzone. Serial: {serial_number} "
            f"(Status: Not Submitted - awaiting payment in DSZ)",
        )
        self._orders.update_order_meta(order_id, {
            "dsz_serial_number": serial_number,
            "dsz_submitted_at": datetime.now(timezone.utc).isoformat(),
        })

        logger.info(f"Order submitted: order_id={order_id}, serial={serial_number}")
        return {
            "success": True,
            "serial_number": serial_number,
            "message": "Order submitted successfully",
        }
