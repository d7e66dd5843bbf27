"""
Stock engine — supplier stock to local stock quantity and status.

Availability override (zero_on_unavailable) runs before the buffer; the
final quantity is never negative, whatever the supplier reports.
Version: 1.0.0
"""
import logging
from typing import Any, Callable, Dict, Optional

from dsz_sync.core.constants.sync import STOCK_STATUS_IN, STOCK_STATUS_OUT
from dsz_sync.schemas.rules import StockRuleSet
from dsz_sync.utils.record_fields import STOCK_FIELDS, first_value
from dsz_sync.utils.type_converters import to_int

logger = logging.getLogger(__name__)

# in_stock encodings the supplier uses for "available"; 1 also matches True
AVAILABLE_FLAGS = ("1", 1)


def calculate_stock(qty: int, buffer_enabled: bool, buffer_amount: int) -> int:
    qty = int(qty)
    if buffer_enabled:
        qty -= int(buffer_amount)
    return max(0, qty)


class StockEngine:

    def __init__(
        self,
        rules: Optional[StockRuleSet] = None,
        loader: Optional[Callable[[], StockRuleSet]] = None,
    ) -> None:
        self._loader = loader
        if rules is None and loader is not None:
            rules = loader()
        self._rules = rules or StockRuleSet()

    @property
    def rules(self) -> StockRuleSet:
        return self._rules

    def reload(self) -> StockRuleSet:
        if self._loader is not None:
            self._rules = self._loader()
            logger.debug("Stock rules reloaded: %s", self._rules.model_dump())
        return self._rules

    def calculate(self, qty: int) -> int:
        return calculate_stock(qty, self._rules.buffer_enabled, self._rules.buffer_amount)

    def supplier_quantity(self, record: Dict[str, Any]) -> int:
        """
        Engine input quantity for a supplier record.

        A record without an in_stock flag counts as available. When the
        flag marks it unavailable and zero_on_unavailable is set, the
        quantity is forced to 0.
        """
        qty = to_int(first_value(record, STOCK_FIELDS), 0)

        flag = record.get("in_stock")
        available = flag is None or flag in AVAILABLE_FLAGS

        if not available and self._rules.zero_on_unavailable:
            return 0
        return qty

    def final_quantity(self, record: Dict[str, Any]) -> int:
        return self.calculate(self.supplier_quantity(record))

    @staticmethod
    def derive_status(qty: int) -> str:
        return STOCK_STATUS_IN if qty > 0 else STOCK_STATUS_OUT

    def preview(self, qty: int) -> Dict[str, Any]:
        final_qty = self.calculate(qty)
        return {
            "supplier_stock": int(qty),
            "buffer": self._rules.buffer_amount if self._rules.buffer_enabled else 0,
            "final_stock": final_qty,
            "stock_status": self.derive_status(final_qty),
            "rules": self._rules.model_dump(),
        }
