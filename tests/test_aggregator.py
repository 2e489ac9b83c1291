from garagegst.invoices.aggregator import (
    UNKNOWN_INVOICE,
    aggregate,
    merge_totals,
    section_subtotals,
    settle_invoice,
)
from garagegst.models import ComputedLine, LineItem
from garagegst.tax.calculator import compute_line


def _line(invoice_id, taxable, cgst=0.0, sgst=0.0, igst=0.0, *, quantity=1.0, date=None, section=None) -> ComputedLine:
    return ComputedLine(
        invoice_id=invoice_id,
        date=date,
        section=section,
        quantity=quantity,
        taxable_amount=taxable,
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        final_amount=round(taxable + cgst + sgst + igst, 2),
    )


def test_aggregate_two_lines_on_one_invoice() -> None:
    lines = [_line("INV1", 100, 5, 5), _line("INV1", 50, 2.5, 2.5)]

    totals = aggregate(lines)["INV1"]

    assert totals.line_count == 2
    assert totals.total_quantity == 2
    assert totals.total_taxable == 150
    assert totals.total_cgst == 7.5
    assert totals.total_sgst == 7.5
    assert totals.total_igst == 0
    assert totals.grand_total == 165


def test_aggregate_keeps_first_seen_order_and_first_date() -> None:
    lines = [
        _line("B", 10, date=None),
        _line("A", 10, date="2024-01-02"),
        _line("B", 10, date="2024-01-05"),
        _line("C", 10),
        _line("A", 10, date="2024-01-03"),
    ]

    result = aggregate(lines)

    assert list(result) == ["B", "A", "C"]
    assert result["B"].date == "2024-01-05"
    assert result["A"].date == "2024-01-02"
    assert aggregate(lines) == result


def test_aggregate_custom_group_by_and_unknown_key() -> None:
    lines = [_line("INV1", 10), _line(None, 20), _line("  ", 30)]

    by_invoice = aggregate(lines)
    assert list(by_invoice) == ["INV1", UNKNOWN_INVOICE]
    assert by_invoice[UNKNOWN_INVOICE].grand_total == 50

    single = aggregate(lines, lambda line: "ALL")
    assert single["ALL"].line_count == 3


def test_aggregate_empty_input_emits_nothing() -> None:
    assert aggregate([]) == {}


def test_aggregate_sums_without_float_drift() -> None:
    lines = [_line("X", 0.1, 0.01, 0.01) for _ in range(10)]

    totals = aggregate(lines)["X"]

    assert totals.total_taxable == 1.0
    assert totals.total_cgst == 0.1
    assert totals.grand_total == 1.2


def test_grand_total_matches_components_for_computed_lines() -> None:
    items = [
        LineItem(invoice_id="JC-1", quantity=3, unit_price=333.33, discount_percent=7.5, cgst_percent=14, sgst_percent=14),
        LineItem(invoice_id="JC-1", quantity=1, unit_price=10.005, cgst_percent=9, sgst_percent=9),
        LineItem(invoice_id="JC-1", known_gross_amount=590, cgst_percent=9, sgst_percent=9),
    ]
    lines = [compute_line(item) for item in items]

    totals = aggregate(lines)["JC-1"]

    components = totals.total_taxable + totals.total_cgst + totals.total_sgst + totals.total_igst
    assert abs(totals.grand_total - components) <= 0.01
    assert abs(totals.grand_total - sum(line.final_amount for line in lines)) <= 0.01


def test_merge_totals_equals_single_aggregate() -> None:
    lines = [
        _line("INV1", 100, 9, 9, quantity=2, date="2024-02-01"),
        _line("INV2", 40, 0, 0, 4.8),
        _line("INV1", 50, 2.5, 2.5),
        _line("INV1", 0.35, 0.03, 0.03, quantity=0.5),
    ]

    merged = merge_totals(aggregate(lines[:2]), aggregate(lines[2:]))

    assert merged == aggregate(lines)


def test_section_subtotals_split_parts_and_labours() -> None:
    lines = [
        _line("JC", 100, 9, 9, section="part"),
        _line("JC", 500, 45, 45, section="labour"),
        _line("JC", 50, 4.5, 4.5, section="part"),
        _line("JC", 10),
    ]

    assert section_subtotals(lines) == {"part": 177.0, "labour": 590.0, "item": 10.0}


def test_settle_invoice_with_advance() -> None:
    lines = [_line("JC", 200, 18, 18, section="part"), _line("JC", 500, 45, 45, section="labour")]
    totals = aggregate(lines)["JC"]

    settlement = settle_invoice(totals, lines, advance_amount=300)

    assert settlement.grand_total == 826
    assert settlement.advance_amount == 300
    assert settlement.balance_due == 526
    assert settlement.section_totals == {"part": 236.0, "labour": 590.0}
    assert settlement.amount_in_words == "Five Hundred Twenty Six Only"


def test_settle_invoice_ignores_negative_advance() -> None:
    totals = aggregate([_line("JC", 100)])["JC"]

    settlement = settle_invoice(totals, advance_amount=-50)

    assert settlement.advance_amount == 0
    assert settlement.balance_due == 100
