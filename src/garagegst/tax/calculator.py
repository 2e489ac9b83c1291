from __future__ import annotations

import logging
from decimal import Decimal

from ..models import ComputedLine, Diagnostic, LineItem
from ..money import money2, quantize2, to_decimal


logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")


def is_reverse(item: LineItem) -> bool:
    """Amount-only rows: a known gross and no usable unit price."""
    return item.known_gross_amount is not None and item.unit_price <= 0


def compute_line(item: LineItem, *, gross_tolerance: float = 0.01) -> ComputedLine:
    """Discount, taxable value, split GST and final amount for one line.

    Forward mode works from quantity x unit price. Reverse mode strips the
    combined rate out of ``known_gross_amount``. In both modes the taxable
    amount is rounded to paise before the tax components are taken from it,
    so a reconciled report sums exactly what was printed per line.

    Never raises: bad numbers are clamped and reported in ``diagnostics``.
    A forward line whose ``known_gross_amount`` is more than ``gross_tolerance``
    away from the computed final amount is flagged ``gross_mismatch``.
    """
    diagnostics = list(item.diagnostics)
    fields = item.model_dump(include=set(LineItem.model_fields) - {"diagnostics"})

    unit_price = item.unit_price
    if unit_price < 0:
        diagnostics.append(
            Diagnostic(code="negative_price", field="unit_price", message=f"unit price {unit_price} clamped to 0")
        )
        unit_price = 0.0
    fields["unit_price"] = unit_price

    discount = item.discount_percent
    if discount > 100 or discount < 0:
        clamped = min(max(discount, 0.0), 100.0)
        diagnostics.append(
            Diagnostic(code="discount_clamped", field="discount_percent", message=f"discount {discount}% clamped to {clamped}%")
        )
        discount = clamped
    fields["discount_percent"] = discount

    mode = "reverse" if is_reverse(item) else "forward"

    if item.quantity <= 0:
        diagnostics.append(
            Diagnostic(code="nonpositive_quantity", field="quantity", message=f"quantity {item.quantity}, amounts zeroed")
        )
        _log(item, diagnostics[len(item.diagnostics):])
        return ComputedLine(**fields, mode=mode, diagnostics=diagnostics)

    cgst_rate = to_decimal(item.cgst_percent)
    sgst_rate = to_decimal(item.sgst_percent)
    igst_rate = to_decimal(item.igst_percent)
    total_rate = cgst_rate + sgst_rate + igst_rate

    if mode == "forward":
        base = to_decimal(item.quantity) * to_decimal(unit_price)
        discount_amount = quantize2(base * to_decimal(discount) / _HUNDRED)
        taxable = quantize2(base - discount_amount)
        base = quantize2(base)
    else:
        gross = to_decimal(item.known_gross_amount)
        if gross < 0:
            diagnostics.append(
                Diagnostic(code="negative_gross", field="gross", message=f"gross {gross} clamped to 0")
            )
            gross = Decimal("0")
        if total_rate == 0:
            taxable = quantize2(gross)
        else:
            taxable = quantize2(gross / (1 + total_rate / _HUNDRED))
        base = taxable
        discount_amount = Decimal("0")

    cgst = quantize2(taxable * cgst_rate / _HUNDRED)
    sgst = quantize2(taxable * sgst_rate / _HUNDRED)
    igst = quantize2(taxable * igst_rate / _HUNDRED)
    final = quantize2(taxable + cgst + sgst + igst)

    if mode == "forward" and item.known_gross_amount is not None:
        gross = to_decimal(item.known_gross_amount)
        if abs(final - gross) > to_decimal(gross_tolerance):
            diagnostics.append(
                Diagnostic(
                    code="gross_mismatch",
                    field="gross",
                    message=f"gross {gross} disagrees with price x quantity ({final}), using price",
                )
            )

    _log(item, diagnostics[len(item.diagnostics):])

    return ComputedLine(
        **fields,
        mode=mode,
        base_amount=money2(base),
        discount_amount=money2(discount_amount),
        taxable_amount=money2(taxable),
        cgst_amount=money2(cgst),
        sgst_amount=money2(sgst),
        igst_amount=money2(igst),
        final_amount=money2(final),
        diagnostics=diagnostics,
    )


def compute_lines(items: list[LineItem], *, gross_tolerance: float = 0.01) -> list[ComputedLine]:
    return [compute_line(item, gross_tolerance=gross_tolerance) for item in items]


def _log(item: LineItem, diagnostics: list[Diagnostic]) -> None:
    for diag in diagnostics:
        logger.warning("line %r (invoice %s): %s", item.description, item.invoice_id, diag.message)
