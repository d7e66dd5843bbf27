"""
Price engine — supplier cost to retail price.

Pipeline: markup (percentage or fixed) -> GST -> rounding -> 2dp.
calculate_price() is pure; PriceEngine binds a rule set and can reload
it from the rule store when settings change mid-run.
Version: 1.0.0
"""
import logging
import math
from typing import Any, Callable, Dict, Optional

from dsz_sync.core.constants.pricing import (
    GST_EXCLUDE,
    GST_FACTOR,
    MARKUP_PERCENTAGE,
    PRICE_EPSILON,
    ROUNDING_ENDINGS,
    ROUNDING_NEAREST,
)
from dsz_sync.schemas.rules import PriceRuleSet

logger = logging.getLogger(__name__)


def _apply_markup(cost: float, rules: PriceRuleSet) -> float:
    if rules.markup_type == MARKUP_PERCENTAGE:
        return cost * (1 + rules.markup_value / 100)
    return cost + rules.markup_value


def _apply_gst(price: float, rules: PriceRuleSet) -> float:
    # "include" means the supplier price already carries GST
    if rules.gst_enabled and rules.gst_type == GST_EXCLUDE:
        return price * GST_FACTOR
    return price


def round_price(price: float, rounding_type: str) -> float:
    """Charm rounding: x.99, x.95, or nearest whole dollar (half up)."""
    # float noise such as 143.00000000000003 must not move the floor
    price = round(price, 6)
    if rounding_type == ROUNDING_NEAREST:
        return float(math.floor(price + 0.5))
    ending = ROUNDING_ENDINGS.get(rounding_type)
    if ending is None:
        return price
    return math.floor(price) + ending


def calculate_price(cost: float, rules: PriceRuleSet) -> float:
    """Apply markup, GST and rounding. Callers filter cost <= 0 beforehand."""
    price = _apply_gst(_apply_markup(float(cost), rules), rules)
    if rules.rounding_enabled:
        price = round_price(price, rules.rounding_type)
    return round(price, 2)


class PriceEngine:

    def __init__(
        self,
        rules: Optional[PriceRuleSet] = None,
        loader: Optional[Callable[[], PriceRuleSet]] = None,
    ) -> None:
        self._loader = loader
        if rules is None and loader is not None:
            rules = loader()
        self._rules = rules or PriceRuleSet()

    @property
    def rules(self) -> PriceRuleSet:
        return self._rules

    def reload(self) -> PriceRuleSet:
        """Re-read rules from the loader (no-op without one)."""
        if self._loader is not None:
            self._rules = self._loader()
            logger.debug("Price rules reloaded: %s", self._rules.model_dump())
        return self._rules

    def calculate(self, cost: float) -> float:
        return calculate_price(cost, self._rules)

    @staticmethod
    def needs_update(current: Any, target: float) -> bool:
        """True when current differs from target by more than the epsilon."""
        try:
            current_value = float(current)
        except (TypeError, ValueError):
            return True
        return abs(current_value - target) > PRICE_EPSILON

    def preview(self, cost: float) -> Dict[str, Any]:
        """Step-by-step breakdown for the rules screen."""
        cost = float(cost)
        after_markup = _apply_markup(cost, self._rules)
        after_gst = _apply_gst(after_markup, self._rules)
        return {
            "supplier_price": round(cost, 2),
            "after_markup": round(after_markup, 2),
            "after_gst": round(after_gst, 2),
            "final_price": self.calculate(cost),
            "rules": self._rules.model_dump(),
        }
