"""
Unit tests for the stock engine.

Tests cover:
- Buffer subtraction, clamped at zero
- Availability override via the in_stock flag
- Status derivation and preview()
Version: 1.0.0
"""
import pytest

from dsz_sync.schemas.rules import StockRuleSet
from dsz_sync.services.stock_engine import StockEngine, calculate_stock


@pytest.mark.unit
class TestCalculateStock:

    def test_buffer_subtracted(self):
        assert calculate_stock(10, True, 2) == 8

    def test_buffer_never_negative(self):
        assert calculate_stock(1, True, 5) == 0

    def test_buffer_disabled(self):
        assert calculate_stock(10, False, 5) == 10

    @pytest.mark.parametrize("buffer_enabled, buffer_amount", [(False, 0), (True, 0), (True, 2)])
    def test_negative_supplier_quantity_clamped(self, buffer_enabled, buffer_amount):
        assert calculate_stock(-3, buffer_enabled, buffer_amount) == 0

    @pytest.mark.parametrize("qty", [0, 1, 2, 3, 10, 250])
    @pytest.mark.parametrize("buffer_amount", [0, 2, 5])
    def test_buffered_quantity_is_stable(self, qty, buffer_amount):
        buffered = calculate_stock(qty, True, buffer_amount)
        assert calculate_stock(buffered, True, 0) == buffered


@pytest.mark.unit
class TestStockEngine:

    def test_reference_buffer_preview(self):
        engine = StockEngine(rules=StockRuleSet(buffer_enabled=True, buffer_amount=2))

        preview = engine.preview(10)

        assert preview["final_stock"] == 8
        assert preview["stock_status"] == "instock"
        assert preview["buffer"] == 2

    def test_preview_buffer_zero_when_disabled(self, stock_engine):
        assert stock_engine.preview(3)["buffer"] == 0

    @pytest.mark.parametrize("flag", ["1", 1, True, None])
    def test_available_flags_keep_quantity(self, stock_engine, flag):
        record = {"sku": "A", "stock_qty": 7, "in_stock": flag}
        assert stock_engine.supplier_quantity(record) == 7

    def test_missing_flag_counts_as_available(self, stock_engine):
        assert stock_engine.supplier_quantity({"sku": "A", "stock_qty": 4}) == 4

    @pytest.mark.parametrize("flag", ["0", 0, False, "no"])
    def test_unavailable_forces_zero(self, stock_engine, flag):
        record = {"sku": "A", "stock_qty": 7, "in_stock": flag}
        assert stock_engine.supplier_quantity(record) == 0

    def test_unavailable_kept_when_override_disabled(self):
        engine = StockEngine(rules=StockRuleSet(zero_on_unavailable=False))
        assert engine.supplier_quantity({"sku": "A", "stock_qty": 7, "in_stock": "0"}) == 7

    def test_quantity_parsed_from_string(self, stock_engine):
        assert stock_engine.supplier_quantity({"sku": "A", "stock_qty": "12.0"}) == 12

    def test_negative_quantity_never_surfaces(self):
        engine = StockEngine(StockRuleSet(buffer_enabled=False))

        assert engine.final_quantity({"stock_qty": "-3"}) == 0
        assert engine.derive_status(engine.final_quantity({"stock_qty": "-3"})) == "outofstock"

    def test_missing_quantity_is_zero(self, stock_engine):
        assert stock_engine.supplier_quantity({"sku": "A"}) == 0

    def test_final_quantity_applies_buffer(self):
        engine = StockEngine(rules=StockRuleSet(buffer_enabled=True, buffer_amount=3))
        assert engine.final_quantity({"sku": "A", "stock_qty": 10, "in_stock": "1"}) == 7

    @pytest.mark.parametrize("qty, status", [(0, "outofstock"), (1, "instock"), (50, "instock")])
    def test_derive_status(self, qty, status):
        assert StockEngine.derive_status(qty) == status
