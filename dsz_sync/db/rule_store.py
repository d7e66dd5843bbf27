"""
Rule store — load and save price/stock rule sets from the settings store.
Version: 1.0.0
"""
import logging

from pydantic import ValidationError as PydanticValidationError

from dsz_sync.core.constants.sync import OPTION_PRICE_RULES, OPTION_STOCK_RULES
from dsz_sync.core.exceptions import ValidationError
from dsz_sync.schemas.rules import PriceRuleSet, StockRuleSet

logger = logging.getLogger(__name__)


class RuleStore:

    def __init__(self, store) -> None:
        self._store = store

    def load_price_rules(self) -> PriceRuleSet:
        data = self._store.get(OPTION_PRICE_RULES, {}) or {}
        try:
            return PriceRuleSet.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Stored price rules invalid, using defaults: {e}")
            return PriceRuleSet()

    def load_stock_rules(self) -> StockRuleSet:
        data = self._store.get(OPTION_STOCK_RULES, {}) or {}
        try:
            return StockRuleSet.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Stored stock rules invalid, using defaults: {e}")
            return StockRuleSet()

    def save_price_rules(self, data: dict) -> PriceRuleSet:
        merged = {**self.load_price_rules().model_dump(), **data}
        try:
            rules = PriceRuleSet.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid price rules: {e}") from e
        self._store.set(OPTION_PRICE_RULES, rules.model_dump())
        logger.info("Price rules saved", extra={"rules": rules.model_dump()})
        return rules

    def save_stock_rules(self, data: dict) -> StockRuleSet:
        merged = {**self.load_stock_rules().model_dump(), **data}
        try:
            rules = StockRuleSet.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid stock rules: {e}") from e
        self._store.set(OPTION_STOCK_RULES, rules.model_dump())
        logger.info("Stock rules saved", extra={"rules": rules.model_dump()})
        return rules
