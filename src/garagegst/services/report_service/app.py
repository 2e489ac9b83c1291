from __future__ import annotations

import datetime as dt
import os

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from ...cache import TtlCache
from ...engine import GstEngine
from ...models import BucketReport, ComputedLine, InvoiceBucketBreakdown, InvoiceSettlement, InvoiceTotals
from ...project_paths import ProjectPaths


class RecordsRequest(BaseModel):
    records: list[dict] = Field(default_factory=list)
    invoice_key: str | None = None


class GstReportRequest(BaseModel):
    records: list[dict] = Field(default_factory=list)
    start: dt.date
    end: dt.date
    include_rates: list[float] = Field(default_factory=list)


class SaleAccountRequest(RecordsRequest):
    start: dt.date | None = None
    end: dt.date | None = None


class SettleRequest(RecordsRequest):
    invoice_id: str = Field(min_length=1)
    advance_amount: float = 0.0


app = FastAPI(title="Garage GST Report Service", version="0.1.0")
paths = ProjectPaths.detect()
engine = GstEngine(paths.load_rules())
report_cache: TtlCache = TtlCache(ttl_s=float(os.getenv("GARAGEGST_REPORT_CACHE_TTL_S", "60")))


def _cached(name: str, req: BaseModel, compute):
    return report_cache.get_or_compute((name, req.model_dump_json()), compute)


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.post("/lines/compute", response_model=list[ComputedLine])
def compute_lines(req: RecordsRequest) -> list[ComputedLine]:
    return engine.compute(req.records, invoice_key=req.invoice_key)


@app.post("/invoices/totals", response_model=list[InvoiceTotals])
def invoice_totals(req: RecordsRequest) -> list[InvoiceTotals]:
    return _cached(
        "invoice_totals",
        req,
        lambda: list(engine.invoice_totals(req.records, invoice_key=req.invoice_key).values()),
    )


@app.post("/reports/gst-buckets", response_model=BucketReport)
def gst_buckets(req: GstReportRequest) -> BucketReport:
    return _cached(
        "gst_buckets",
        req,
        lambda: engine.gst_report(req.records, req.start, req.end, include_rates=req.include_rates),
    )


@app.post("/reports/sale-account", response_model=list[InvoiceBucketBreakdown])
def sale_account(req: SaleAccountRequest) -> list[InvoiceBucketBreakdown]:
    return _cached(
        "sale_account",
        req,
        lambda: list(
            engine.sale_account_report(
                req.records, start=req.start, end=req.end, invoice_key=req.invoice_key
            ).values()
        ),
    )


@app.post("/invoices/settle", response_model=InvoiceSettlement)
def settle(req: SettleRequest) -> InvoiceSettlement:
    settlement = engine.settle(
        req.records, req.invoice_id, advance_amount=req.advance_amount, invoice_key=req.invoice_key
    )
    if settlement is None:
        raise HTTPException(status_code=404, detail=f"No lines for invoice {req.invoice_id!r}")
    return settlement
