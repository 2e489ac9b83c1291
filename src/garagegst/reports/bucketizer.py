from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from ..invoices.aggregator import GroupBy, aggregate, invoice_key
from ..models import BucketReport, ComputedLine, DateRange, InvoiceBucketBreakdown, RateBucketTotals
from ..money import money2, sum_money, to_decimal
from ..rules.loader import RuleSet
from ..rules.normalization import parse_date


logger = logging.getLogger(__name__)

OTHER = "other"


def bucket_label(rate: float) -> str:
    return f"{rate:g}"


def classify_rate(rate: float, rules: RuleSet | None = None) -> str:
    """Bucket label for a combined GST rate, or "other" when none is close enough.

    17.99 -> "18"; 15 -> "other" with the default 0.1 point tolerance.
    """
    buckets = (rules or RuleSet.default()).buckets
    if not buckets.rates:
        return OTHER
    nearest = min(buckets.rates, key=lambda b: abs(rate - b))
    if round(abs(rate - nearest), 6) <= buckets.tolerance:
        return bucket_label(nearest)
    return OTHER


@dataclass(slots=True)
class _BucketRunning:
    bucket: str
    rate_percent: float | None
    line_count: int = 0
    taxable: Decimal = field(default_factory=Decimal)
    cgst: Decimal = field(default_factory=Decimal)
    sgst: Decimal = field(default_factory=Decimal)
    igst: Decimal = field(default_factory=Decimal)
    amount: Decimal = field(default_factory=Decimal)
    rates_seen: list[float] = field(default_factory=list)

    def add(self, line: ComputedLine) -> None:
        self.line_count += 1
        self.taxable += to_decimal(line.taxable_amount)
        self.cgst += to_decimal(line.cgst_amount)
        self.sgst += to_decimal(line.sgst_amount)
        self.igst += to_decimal(line.igst_amount)
        self.amount += to_decimal(line.final_amount)
        if self.rate_percent is None:
            rate = round(line.total_rate, 4)
            if rate not in self.rates_seen:
                self.rates_seen.append(rate)

    def freeze(self) -> RateBucketTotals:
        return RateBucketTotals(
            bucket=self.bucket,
            rate_percent=self.rate_percent,
            line_count=self.line_count,
            taxable_sum=money2(self.taxable),
            cgst_sum=money2(self.cgst),
            sgst_sum=money2(self.sgst),
            igst_sum=money2(self.igst),
            amount_sum=money2(self.amount),
            rates_seen=sorted(self.rates_seen),
        )


def _fill(
    lines: Iterable[ComputedLine], rules: RuleSet, include_rates: Sequence[float] = ()
) -> tuple[list[RateBucketTotals], RateBucketTotals]:
    running = {bucket_label(r): _BucketRunning(bucket_label(r), r) for r in rules.buckets.rates}
    other = _BucketRunning(OTHER, None)
    for line in lines:
        label = classify_rate(line.total_rate, rules)
        (other if label == OTHER else running[label]).add(line)

    wanted = {classify_rate(float(r), rules) for r in include_rates}
    out = [acc.freeze() for label, acc in running.items() if acc.line_count or label in wanted]
    return out, other.freeze()


def as_date_range(value: DateRange | Mapping | Sequence) -> DateRange:
    """Accept a DateRange, {"from": .., "to": ..} / {"start": .., "end": ..}, or a (start, end) pair."""
    if isinstance(value, DateRange):
        start, end = value.start, value.end
    elif isinstance(value, Mapping):
        start = value.get("start", value.get("from"))
        end = value.get("end", value.get("to"))
    else:
        start, end = value
    start_d, end_d = parse_date(start), parse_date(end)
    if start_d is None or end_d is None:
        raise ValueError(f"Invalid date range: {start!r} .. {end!r}")
    if start_d > end_d:
        logger.debug("date range %s..%s reversed, swapping", start_d, end_d)
        start_d, end_d = end_d, start_d
    return DateRange(start=start_d, end=end_d)


@dataclass(slots=True)
class _DateFilter:
    date_range: DateRange
    skipped: int = 0
    out_of_range: int = 0

    def keep(self, line: ComputedLine) -> bool:
        day = parse_date(line.date)
        if day is None:
            self.skipped += 1
            logger.warning("line %r (invoice %s): unparseable date %r, skipped", line.description, line.invoice_id, line.date)
            return False
        if not (self.date_range.start <= day <= self.date_range.end):
            self.out_of_range += 1
            return False
        return True


def bucketize(
    lines: Iterable[ComputedLine],
    date_range: DateRange | Mapping | Sequence,
    rules: RuleSet | None = None,
    *,
    include_rates: Sequence[float] = (),
) -> BucketReport:
    """GST-rate bucket totals for the lines dated inside ``date_range`` (inclusive).

    Every in-range line lands in exactly one bucket or in ``other``; lines
    with a missing or unparseable date only show up in ``skipped_count``.
    Buckets without lines are left out unless listed in ``include_rates``.
    """
    rules = rules or RuleSet.default()
    date_filter = _DateFilter(as_date_range(date_range))
    kept = [line for line in lines if date_filter.keep(line)]

    buckets, other = _fill(kept, rules, include_rates)

    report = BucketReport(
        date_range=date_filter.date_range,
        buckets=buckets,
        other=other,
        skipped_count=date_filter.skipped,
        out_of_range_count=date_filter.out_of_range,
        total_taxable=sum_money(b.taxable_sum for b in buckets),
        total_cgst=sum_money(b.cgst_sum for b in buckets),
        total_sgst=sum_money(b.sgst_sum for b in buckets),
        total_igst=sum_money(b.igst_sum for b in buckets),
        total_amount=sum_money(b.amount_sum for b in buckets),
    )
    logger.debug(
        "bucketized %d lines (%d skipped, %d out of range, %d other)",
        len(kept), report.skipped_count, report.out_of_range_count, other.line_count,
    )
    return report


def bucketize_invoices(
    lines: Iterable[ComputedLine],
    group_by: GroupBy | None = None,
    rules: RuleSet | None = None,
    *,
    date_range: DateRange | Mapping | Sequence | None = None,
) -> dict[str, InvoiceBucketBreakdown]:
    """One row per invoice with its totals and its GST-rate columns."""
    rules = rules or RuleSet.default()
    if date_range is not None:
        date_filter = _DateFilter(as_date_range(date_range))
        lines = [line for line in lines if date_filter.keep(line)]

    groups: dict[str, list[ComputedLine]] = {}
    for line in lines:
        groups.setdefault(invoice_key(line, group_by), []).append(line)

    out: dict[str, InvoiceBucketBreakdown] = {}
    for key, group in groups.items():
        totals = aggregate(group, lambda _line, key=key: key)[key]
        buckets, other = _fill(group, rules)
        out[key] = InvoiceBucketBreakdown(totals=totals, buckets=buckets, other=other)
    return out
