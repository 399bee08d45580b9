from __future__ import annotations

import unittest
from datetime import date

from estimate_engine import (
    COMMON_ITEMS,
    DEFAULT_BUSINESS_NAME,
    Estimate,
    EstimateError,
    LineItem,
    LineItemCategory,
    LineItemUnit,
    ProjectDetails,
    UserProfile,
    add_line_item,
    add_line_items,
    allocation_by_category,
    clear_line_items,
    coerce_number,
    compute_totals,
    estimate_from_dict,
    estimate_to_dict,
    estimate_totals,
    format_money,
    format_quantity,
    initial_estimate,
    is_wedding_project,
    items_by_category,
    line_item_from_preset,
    new_estimate,
    new_line_item,
    remove_line_item,
    set_markup_percent,
    set_tax_percent,
    update_details,
    update_line_item,
)


def _item(item_id: str, category: LineItemCategory, quantity: float, rate: float, *, taxable: bool = True) -> LineItem:
    return LineItem(
        id=item_id,
        description=f"item {item_id}",
        category=category,
        quantity=quantity,
        rate=rate,
        unit=LineItemUnit.DAY,
        taxable=taxable,
    )


def _estimate(*items: LineItem, markup: float = 10, tax: float = 8) -> Estimate:
    return Estimate(id="EST-1", details=ProjectDetails(), items=tuple(items), markup_percent=markup, tax_percent=tax)


class TestTotals(unittest.TestCase):
    def test_markup_applies_before_tax(self) -> None:
        est = _estimate(
            _item("a", LineItemCategory.PRODUCTION, 2, 350),
            _item("b", LineItemCategory.EQUIPMENT, 1, 400),
        )
        totals = estimate_totals(est)
        self.assertAlmostEqual(totals.subtotal, 1100)
        self.assertAlmostEqual(totals.markup_amount, 110)
        self.assertAlmostEqual(totals.taxable_subtotal, 1100)
        self.assertAlmostEqual(totals.taxable_amount, 1210)
        self.assertAlmostEqual(totals.tax_amount, 96.8)
        self.assertAlmostEqual(totals.total, 1306.8)

    def test_non_taxable_items_are_excluded_from_tax(self) -> None:
        totals = compute_totals(
            [
                _item("a", LineItemCategory.PRODUCTION, 2, 500),
                _item("b", LineItemCategory.EXPENSES, 1, 100, taxable=False),
            ],
            markup_percent=10,
            tax_percent=8,
        )
        self.assertAlmostEqual(totals.subtotal, 1100)
        self.assertAlmostEqual(totals.markup_amount, 110)
        self.assertAlmostEqual(totals.taxable_subtotal, 1000)
        self.assertAlmostEqual(totals.taxable_amount, 1100)
        self.assertAlmostEqual(totals.tax_amount, 88)
        self.assertAlmostEqual(totals.total, 1298)

    def test_all_non_taxable_means_zero_tax(self) -> None:
        totals = compute_totals([_item("a", LineItemCategory.OTHER, 3, 50, taxable=False)], 25, 20)
        self.assertEqual(totals.tax_amount, 0)
        self.assertAlmostEqual(totals.total, 150 + 37.5)

    def test_empty_estimate_is_all_zero(self) -> None:
        totals = compute_totals([], 10, 8)
        self.assertEqual(
            (totals.subtotal, totals.markup_amount, totals.tax_amount, totals.total),
            (0, 0, 0, 0),
        )

    def test_totals_are_deterministic(self) -> None:
        est = _estimate(_item("a", LineItemCategory.PRODUCTION, 1.5, 333.33))
        self.assertEqual(estimate_totals(est), estimate_totals(est))

    def test_total_identity_holds(self) -> None:
        est = _estimate(
            _item("a", LineItemCategory.PRODUCTION, 3, 123.45),
            _item("b", LineItemCategory.POST_PRODUCTION, 2, 99.99, taxable=False),
            markup=17,
            tax=6.5,
        )
        t = estimate_totals(est)
        self.assertAlmostEqual(t.total, t.subtotal + t.markup_amount + t.tax_amount)
        self.assertLessEqual(t.taxable_subtotal, t.subtotal)


class TestAllocation(unittest.TestCase):
    def test_allocation_keeps_fixed_order_and_drops_empty(self) -> None:
        items = [
            _item("a", LineItemCategory.POST_PRODUCTION, 2, 350),
            _item("b", LineItemCategory.PRODUCTION, 1, 1200),
            _item("c", LineItemCategory.EXPENSES, 1, 0),
            _item("d", LineItemCategory.PRODUCTION, 1, 300),
        ]
        rows = allocation_by_category(items)
        self.assertEqual(
            rows,
            ((LineItemCategory.PRODUCTION, 1500.0), (LineItemCategory.POST_PRODUCTION, 700.0)),
        )

    def test_items_by_category_uses_first_appearance(self) -> None:
        items = [
            _item("a", LineItemCategory.POST_PRODUCTION, 1, 1),
            _item("b", LineItemCategory.PRODUCTION, 1, 1),
            _item("c", LineItemCategory.POST_PRODUCTION, 1, 1),
        ]
        groups = items_by_category(items)
        self.assertEqual([cat for cat, _ in groups], [LineItemCategory.POST_PRODUCTION, LineItemCategory.PRODUCTION])
        self.assertEqual([i.id for i in groups[0][1]], ["a", "c"])


class TestEditing(unittest.TestCase):
    def test_update_quantity_recomputes_amount(self) -> None:
        est = _estimate(_item("a", LineItemCategory.PRODUCTION, 1, 350))
        est = update_line_item(est, "a", "quantity", "3")
        self.assertEqual(est.items[0].quantity, 3.0)
        self.assertAlmostEqual(est.items[0].amount, 1050)

    def test_non_numeric_edit_becomes_zero(self) -> None:
        est = _estimate(_item("a", LineItemCategory.PRODUCTION, 2, 350))
        est = update_line_item(est, "a", "rate", "abc")
        self.assertEqual(est.items[0].rate, 0.0)
        self.assertEqual(estimate_totals(est).subtotal, 0)

    def test_update_category_and_unit_are_parsed(self) -> None:
        est = _estimate(_item("a", LineItemCategory.PRODUCTION, 1, 1))
        est = update_line_item(est, "a", "category", "Equipment & Rentals")
        est = update_line_item(est, "a", "unit", "hour")
        self.assertEqual(est.items[0].category, LineItemCategory.EQUIPMENT)
        self.assertEqual(est.items[0].unit, LineItemUnit.HOUR)

    def test_update_unknown_field_raises(self) -> None:
        est = _estimate(_item("a", LineItemCategory.PRODUCTION, 1, 1))
        with self.assertRaises(EstimateError):
            update_line_item(est, "a", "id", "b")

    def test_update_unknown_id_is_a_no_op(self) -> None:
        est = _estimate(_item("a", LineItemCategory.PRODUCTION, 1, 1))
        self.assertEqual(update_line_item(est, "zzz", "rate", 10), est)

    def test_add_remove_clear(self) -> None:
        est = _estimate()
        est = add_line_item(est, new_line_item(description="Gaffer", rate=650))
        est = add_line_item(est, line_item_from_preset(COMMON_ITEMS[0]))
        self.assertEqual(len(est.items), 2)
        self.assertEqual(est.items[1].description, COMMON_ITEMS[0].description)
        est = remove_line_item(est, est.items[0].id)
        self.assertEqual([i.description for i in est.items], [COMMON_ITEMS[0].description])
        self.assertEqual(clear_line_items(est).items, ())

    def test_added_items_get_unique_ids(self) -> None:
        est = _estimate(_item("dup", LineItemCategory.PRODUCTION, 1, 1))
        est = add_line_items(est, [_item("dup", LineItemCategory.OTHER, 1, 2), _item("dup", LineItemCategory.OTHER, 1, 3)])
        ids = [i.id for i in est.items]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(ids[0], "dup")

    def test_markup_and_tax_are_clamped(self) -> None:
        est = _estimate()
        self.assertEqual(set_markup_percent(est, 80).markup_percent, 50)
        self.assertEqual(set_markup_percent(est, -5).markup_percent, 0)
        self.assertEqual(set_tax_percent(est, 35).tax_percent, 20)
        self.assertEqual(set_tax_percent(est, "x").tax_percent, 0)

    def test_update_details_rejects_unknown_fields(self) -> None:
        est = _estimate()
        self.assertEqual(update_details(est, client_name="Acme").details.client_name, "Acme")
        with self.assertRaises(EstimateError):
            update_details(est, budget="1000")

    def test_wedding_detection(self) -> None:
        self.assertTrue(is_wedding_project(ProjectDetails(project_name="Smith Wedding Film")))
        self.assertTrue(is_wedding_project(ProjectDetails(client_name="WEDDING co")))
        self.assertFalse(is_wedding_project(ProjectDetails(project_name="Music video")))


class TestNewEstimate(unittest.TestCase):
    def test_initial_estimate(self) -> None:
        est = initial_estimate(today=date(2026, 3, 1))
        self.assertEqual(est.id, "EST-001")
        self.assertEqual(est.details.project_date, "2026-03-01")
        self.assertEqual(est.details.business_name, DEFAULT_BUSINESS_NAME)
        self.assertEqual(est.markup_percent, 10)
        self.assertEqual(est.tax_percent, 0)
        self.assertEqual(est.items, ())

    def test_pro_profile_is_prefilled(self) -> None:
        profile = UserProfile(business_name="Lumen Films", payment_link="https://pay.example/x", payable_to="Lumen LLC")
        est = new_estimate(profile, is_pro=True, today=date(2026, 3, 1))
        self.assertTrue(est.id.startswith("EST-"))
        self.assertEqual(est.details.business_name, "Lumen Films")
        self.assertEqual(est.details.payment_link, "https://pay.example/x")
        self.assertEqual(est.details.payable_to, "Lumen LLC")

    def test_free_user_gets_defaults(self) -> None:
        profile = UserProfile(business_name="Lumen Films", payment_link="https://pay.example/x")
        est = new_estimate(profile, is_pro=False)
        self.assertEqual(est.details.business_name, DEFAULT_BUSINESS_NAME)
        self.assertEqual(est.details.payment_link, "")


class TestFormattingAndSerialization(unittest.TestCase):
    def test_coerce_number(self) -> None:
        self.assertEqual(coerce_number("12.5"), 12.5)
        self.assertEqual(coerce_number(None, 1.0), 1.0)
        self.assertEqual(coerce_number("", 2.0), 2.0)
        self.assertEqual(coerce_number("nan", 3.0), 3.0)
        self.assertEqual(coerce_number([1]), 0.0)

    def test_format_money(self) -> None:
        self.assertEqual(format_money(1298), "$1,298.00")
        self.assertEqual(format_money(-5.5), "-$5.50")
        self.assertEqual(format_money(10, "EUR"), "10.00 EUR")

    def test_format_quantity(self) -> None:
        self.assertEqual(format_quantity(2.0), "2")
        self.assertEqual(format_quantity(1.5), "1.5")

    def test_estimate_dict_uses_camel_case_and_restores(self) -> None:
        est = update_details(
            _estimate(_item("a", LineItemCategory.EQUIPMENT, 2, 500, taxable=False), markup=15, tax=5),
            client_name="Acme",
            payment_link="https://pay.example",
        )
        data = estimate_to_dict(est)
        self.assertEqual(data["markupPercent"], 15)
        self.assertEqual(data["details"]["clientName"], "Acme")
        self.assertEqual(data["items"][0]["category"], "Equipment & Rentals")
        self.assertEqual(estimate_from_dict(data), est)


if __name__ == "__main__":
    unittest.main()
