from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from ..models import ComputedLine, InvoiceSettlement, InvoiceTotals
from ..money import amount_in_words, money2, to_decimal


logger = logging.getLogger(__name__)

UNKNOWN_INVOICE = "UNKNOWN"

GroupBy = Callable[[ComputedLine], "str | None"]


def by_invoice_id(line: ComputedLine) -> str | None:
    return line.invoice_id


@dataclass(slots=True)
class _Running:
    invoice_id: str
    date: str | None = None
    line_count: int = 0
    quantity: Decimal = field(default_factory=Decimal)
    taxable: Decimal = field(default_factory=Decimal)
    cgst: Decimal = field(default_factory=Decimal)
    sgst: Decimal = field(default_factory=Decimal)
    igst: Decimal = field(default_factory=Decimal)
    grand: Decimal = field(default_factory=Decimal)

    def add_line(self, line: ComputedLine) -> None:
        if self.date is None and line.date:
            self.date = line.date
        self.line_count += 1
        self.quantity += to_decimal(line.quantity)
        self.taxable += to_decimal(line.taxable_amount)
        self.cgst += to_decimal(line.cgst_amount)
        self.sgst += to_decimal(line.sgst_amount)
        self.igst += to_decimal(line.igst_amount)
        self.grand += to_decimal(line.final_amount)

    def add_totals(self, totals: InvoiceTotals) -> None:
        if self.date is None and totals.date:
            self.date = totals.date
        self.line_count += totals.line_count
        self.quantity += to_decimal(totals.total_quantity)
        self.taxable += to_decimal(totals.total_taxable)
        self.cgst += to_decimal(totals.total_cgst)
        self.sgst += to_decimal(totals.total_sgst)
        self.igst += to_decimal(totals.total_igst)
        self.grand += to_decimal(totals.grand_total)

    def freeze(self) -> InvoiceTotals:
        totals = InvoiceTotals(
            invoice_id=self.invoice_id,
            date=self.date,
            line_count=self.line_count,
            total_quantity=float(self.quantity),
            total_taxable=money2(self.taxable),
            total_cgst=money2(self.cgst),
            total_sgst=money2(self.sgst),
            total_igst=money2(self.igst),
            grand_total=money2(self.grand),
        )
        drift = abs(self.grand - (self.taxable + self.cgst + self.sgst + self.igst))
        if drift > Decimal("0.01"):
            logger.warning("invoice %s: grand total off its components by %s", self.invoice_id, drift)
        return totals


def invoice_key(line: ComputedLine, group_by: GroupBy | None = None) -> str:
    key = (group_by or by_invoice_id)(line)
    if key is None:
        return UNKNOWN_INVOICE
    key = str(key).strip()
    return key or UNKNOWN_INVOICE


def aggregate(lines: Iterable[ComputedLine], group_by: GroupBy | None = None) -> dict[str, InvoiceTotals]:
    """Sum computed lines per invoice, keeping first-seen invoice order."""
    running: dict[str, _Running] = {}
    for line in lines:
        key = invoice_key(line, group_by)
        acc = running.get(key)
        if acc is None:
            acc = running[key] = _Running(invoice_id=key)
        acc.add_line(line)

    logger.debug("aggregated %d invoices", len(running))
    return {key: acc.freeze() for key, acc in running.items() if acc.line_count > 0}


def merge_totals(*results: Mapping[str, InvoiceTotals]) -> dict[str, InvoiceTotals]:
    """Combine aggregate() outputs, e.g. from two pages of the same report."""
    running: dict[str, _Running] = {}
    for result in results:
        for key, totals in result.items():
            acc = running.get(key)
            if acc is None:
                acc = running[key] = _Running(invoice_id=key)
            acc.add_totals(totals)
    return {key: acc.freeze() for key, acc in running.items() if acc.line_count > 0}


def section_subtotals(lines: Iterable[ComputedLine]) -> dict[str, float]:
    subtotals: dict[str, Decimal] = {}
    for line in lines:
        section = line.section or "item"
        subtotals[section] = subtotals.get(section, Decimal("0")) + to_decimal(line.final_amount)
    return {section: money2(value) for section, value in subtotals.items()}


def settle_invoice(
    totals: InvoiceTotals,
    lines: Iterable[ComputedLine] = (),
    *,
    advance_amount: float = 0.0,
) -> InvoiceSettlement:
    """Balance due after an advance, as printed at the foot of a job-card invoice.

    ``lines`` are the invoice's own lines and only feed the per-section
    subtotals (parts, labours).
    """
    advance = to_decimal(advance_amount)
    if advance < 0:
        logger.warning("invoice %s: negative advance %s treated as 0", totals.invoice_id, advance)
        advance = Decimal("0")
    balance = to_decimal(totals.grand_total) - advance

    return InvoiceSettlement(
        invoice_id=totals.invoice_id,
        section_totals=section_subtotals(lines),
        grand_total=totals.grand_total,
        advance_amount=money2(advance),
        balance_due=money2(balance),
        amount_in_words=amount_in_words(balance),
    )
