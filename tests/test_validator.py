"""
Tests for order form validation and initial form state.
"""
import pytest

from line_planner.calculated_fields import calculate_production
from line_planner.constants import DEFAULT_PRODUCT_DESCRIPTION
from line_planner.data_loader import ProductionInput
from line_planner.errors import ValidationError
from line_planner.validator import OrderForm, initial_form_state, validate_order_form


class TestValidateOrderForm:
    @pytest.mark.parametrize("code", ["", "   "])
    def test_product_code_is_required(self, code, catalog):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_form(OrderForm(code=code, product="Filme X"), catalog)

        assert exc_info.value.field == "code"

    def test_converts_numbers(self, catalog):
        form = OrderForm(
            code="FX-100",
            product="Filme X",
            start_time=" 08:00 ",
            speed="150",
            simultaneous_coils="2",
            avg_length="2000,5",
            total_coils="20",
            planned_quantity="5000",
            pallet_changes="4",
        )

        production_input = validate_order_form(form, catalog)

        assert production_input == ProductionInput(
            product="Filme X",
            start_time="08:00",
            speed=150,
            simultaneous_coils=2,
            avg_length=2000.5,
            total_coils=20,
            planned_quantity=5000,
            pallet_changes=4,
        )

    def test_blank_and_garbage_numbers_become_zero(self, catalog):
        form = OrderForm(code="FX-100", product="Filme X", speed="", total_coils="lots")

        production_input = validate_order_form(form, catalog)

        assert production_input.speed == 0
        assert production_input.total_coils == 0

    def test_blank_product_uses_catalog(self, catalog):
        production_input = validate_order_form(OrderForm(code="fx-150"), catalog)

        assert production_input.product == "Filme X 150mm"

    def test_unknown_code_uses_default_description(self, catalog):
        production_input = validate_order_form(OrderForm(code="ZZ-1"), catalog)

        assert production_input.product == DEFAULT_PRODUCT_DESCRIPTION

    def test_typed_product_wins_over_catalog(self, catalog):
        production_input = validate_order_form(OrderForm(code="FX-150", product="Custom"), catalog)

        assert production_input.product == "Custom"


class TestInitialFormState:
    def test_new_order_only_has_suggested_start(self):
        form = initial_form_state(suggested_start="12:05")

        assert form == OrderForm(start_time="12:05")

    def test_edit_prefills_from_item(self, filme_x_input, now):
        item = calculate_production(filme_x_input, now=now)

        form = initial_form_state(item, suggested_start="23:00")

        assert form.code == ""
        assert form.product == "Filme X"
        assert form.start_time == "08:00"
        assert form.speed == "150"
        assert form.total_coils == "20"
        assert form.planned_quantity == "5000"

    def test_edit_blanks_non_positive_numbers(self, now):
        item = calculate_production(ProductionInput(product="P", start_time="09:30"), now=now)

        form = initial_form_state(item)

        assert form.speed == ""
        assert form.pallet_changes == ""
        assert form.start_time == "09:30"
