from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field


class Diagnostic(BaseModel):
    code: str
    field: str | None = None
    message: str


class LineItem(BaseModel):
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    discount_percent: float = 0.0
    cgst_percent: float = 0.0
    sgst_percent: float = 0.0
    igst_percent: float = 0.0
    known_gross_amount: float | None = None
    invoice_id: str | None = None
    date: str | None = None
    section: str | None = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def total_rate(self) -> float:
        return self.cgst_percent + self.sgst_percent + self.igst_percent


class ComputedLine(LineItem):
    mode: Literal["forward", "reverse"] = "forward"
    base_amount: float = 0.0
    discount_amount: float = 0.0
    taxable_amount: float = 0.0
    cgst_amount: float = 0.0
    sgst_amount: float = 0.0
    igst_amount: float = 0.0
    final_amount: float = 0.0


class InvoiceTotals(BaseModel):
    invoice_id: str
    date: str | None = None
    line_count: int = 0
    total_quantity: float = 0.0
    total_taxable: float = 0.0
    total_cgst: float = 0.0
    total_sgst: float = 0.0
    total_igst: float = 0.0
    grand_total: float = 0.0


class DateRange(BaseModel):
    start: dt.date
    end: dt.date


class RateBucketTotals(BaseModel):
    bucket: str
    rate_percent: float | None = None
    line_count: int = 0
    taxable_sum: float = 0.0
    cgst_sum: float = 0.0
    sgst_sum: float = 0.0
    igst_sum: float = 0.0
    amount_sum: float = 0.0
    rates_seen: list[float] = Field(default_factory=list)


class BucketReport(BaseModel):
    date_range: DateRange | None = None
    buckets: list[RateBucketTotals] = Field(default_factory=list)
    other: RateBucketTotals = Field(default_factory=lambda: RateBucketTotals(bucket="other"))
    skipped_count: int = 0
    out_of_range_count: int = 0
    total_taxable: float = 0.0
    total_cgst: float = 0.0
    total_sgst: float = 0.0
    total_igst: float = 0.0
    total_amount: float = 0.0

    def bucket(self, label: str) -> RateBucketTotals | None:
        for item in self.buckets:
            if item.bucket == label:
                return item
        if label == self.other.bucket:
            return self.other
        return None


class InvoiceBucketBreakdown(BaseModel):
    totals: InvoiceTotals
    buckets: list[RateBucketTotals] = Field(default_factory=list)
    other: RateBucketTotals = Field(default_factory=lambda: RateBucketTotals(bucket="other"))


class InvoiceSettlement(BaseModel):
    invoice_id: str
    section_totals: dict[str, float] = Field(default_factory=dict)
    grand_total: float = 0.0
    advance_amount: float = 0.0
    balance_due: float = 0.0
    amount_in_words: str = ""
