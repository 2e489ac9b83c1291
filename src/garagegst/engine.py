from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .invoices.aggregator import GroupBy, aggregate, settle_invoice
from .invoices.aggregator import invoice_key as group_key
from .models import BucketReport, ComputedLine, InvoiceBucketBreakdown, InvoiceSettlement, InvoiceTotals, LineItem
from .project_paths import ProjectPaths
from .reports.bucketizer import bucketize, bucketize_invoices
from .rules.loader import RuleSet
from .rules.normalization import flatten_invoices, normalize
from .tax.calculator import compute_lines


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GstEngine:
    """Raw backend records in, GST-consistent lines, invoices and reports out.

    ``raws`` arguments accept flat rows (spare-part transactions, service
    records) as well as invoice documents with nested ``items`` / ``parts`` /
    ``labours`` lists; the normalizer absorbs the difference.
    """

    rules: RuleSet = field(default_factory=RuleSet.default)

    @classmethod
    def detect(cls, start: Path | None = None) -> "GstEngine":
        return cls(ProjectPaths.detect(start).load_rules())

    def normalize(self, raw: Mapping, **context) -> LineItem:
        return normalize(raw, self.rules, **context)

    def compute(self, raws: Iterable[Mapping], *, invoice_key: str | None = None) -> list[ComputedLine]:
        items = flatten_invoices(raws, self.rules, invoice_key=invoice_key)
        lines = compute_lines(items, gross_tolerance=self.rules.lines.gross_mismatch_tolerance)
        flagged = sum(1 for line in lines if line.diagnostics)
        if flagged:
            logger.info("computed %d lines, %d with diagnostics", len(lines), flagged)
        return lines

    def invoice_totals(
        self,
        raws: Iterable[Mapping],
        *,
        invoice_key: str | None = None,
        group_by: GroupBy | None = None,
    ) -> dict[str, InvoiceTotals]:
        return aggregate(self.compute(raws, invoice_key=invoice_key), group_by)

    def gst_report(
        self,
        raws: Iterable[Mapping],
        start: str | dt.date,
        end: str | dt.date,
        *,
        include_rates: Sequence[float] = (),
    ) -> BucketReport:
        return bucketize(self.compute(raws), (start, end), self.rules, include_rates=include_rates)

    def sale_account_report(
        self,
        raws: Iterable[Mapping],
        *,
        start: str | dt.date | None = None,
        end: str | dt.date | None = None,
        invoice_key: str | None = None,
    ) -> dict[str, InvoiceBucketBreakdown]:
        date_range = (start, end) if start is not None and end is not None else None
        return bucketize_invoices(
            self.compute(raws, invoice_key=invoice_key), rules=self.rules, date_range=date_range
        )

    def settle(
        self,
        raws: Iterable[Mapping],
        invoice_id: str,
        *,
        advance_amount: float = 0.0,
        invoice_key: str | None = None,
    ) -> InvoiceSettlement | None:
        lines = self.compute(raws, invoice_key=invoice_key)
        totals = aggregate(lines).get(invoice_id)
        if totals is None:
            return None
        own = [line for line in lines if group_key(line) == invoice_id]
        return settle_invoice(totals, own, advance_amount=advance_amount)
