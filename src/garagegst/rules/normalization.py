from __future__ import annotations

import datetime as dt
import logging
import math
import re
from collections.abc import Iterable, Mapping

from ..models import Diagnostic, LineItem
from .loader import RuleSet


logger = logging.getLogger(__name__)

_NUMBER_NOISE = re.compile(r"[,\s₹]|^rs\.?", re.IGNORECASE)
_DAY_FIRST = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4})")


class _Missing:
    pass


MISSING = _Missing()


def coerce_number(value: object) -> float | None:
    """Parse a backend numeric field. None when it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        out = float(value)
    elif isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value.strip())
        if not cleaned:
            return None
        try:
            out = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(out):
        return None
    return out


def parse_date(value: object) -> dt.date | None:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    try:
        return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    m = _DAY_FIRST.match(text)
    if not m:
        return None
    day, month, year = map(int, m.groups())
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def normalize(
    raw: Mapping,
    rules: RuleSet | None = None,
    *,
    invoice_id: str | None = None,
    date: str | None = None,
    section: str | None = None,
    invoice_key: str | None = None,
) -> LineItem:
    rules = rules or RuleSet.default()
    if not isinstance(raw, Mapping):
        raw = {}
    diagnostics: list[Diagnostic] = []

    def lookup(name: str) -> object:
        for key in rules.aliases.aliases(name):
            if key in raw and raw[key] is not None:
                return raw[key]
        return MISSING

    def number(name: str) -> float | None:
        value = lookup(name)
        if value is MISSING:
            return None
        out = coerce_number(value)
        if out is None:
            diagnostics.append(
                Diagnostic(code="non_numeric", field=name, message=f"{name}={value!r} is not a number, using 0")
            )
        return out

    quantity = number("quantity")
    unit_price = number("unit_price")
    discount = number("discount_percent") or 0.0
    cgst = _rate(number("cgst_percent"), "cgst_percent", diagnostics)
    sgst = _rate(number("sgst_percent"), "sgst_percent", diagnostics)
    igst = _rate(number("igst_percent"), "igst_percent", diagnostics)
    gross = number("gross")

    if cgst + sgst > 0 and igst > 0:
        if rules.lines.prefer_intra_state:
            kept, dropped = "cgst/sgst", "igst"
            igst = 0.0
        else:
            kept, dropped = "igst", "cgst/sgst"
            cgst = sgst = 0.0
        diagnostics.append(
            Diagnostic(
                code="tax_conflict",
                field="igst_percent",
                message=f"both CGST/SGST and IGST set, keeping {kept} and zeroing {dropped}",
            )
        )

    # same rule as the calculator's reverse mode: a gross and no positive price
    reverse = gross is not None and (unit_price or 0.0) <= 0
    if quantity is None:
        if lookup("quantity") is not MISSING:
            quantity = 0.0
        elif reverse:
            quantity = 1.0
        else:
            quantity = 0.0
            diagnostics.append(
                Diagnostic(code="missing_quantity", field="quantity", message="no quantity, line contributes 0")
            )

    if invoice_key is not None:
        raw_id = raw.get(invoice_key)
    else:
        raw_id = lookup("invoice_id")
    if invoice_id is None and raw_id is not MISSING and raw_id is not None and str(raw_id).strip():
        invoice_id = str(raw_id).strip()

    raw_date = lookup("date")
    if date is None and raw_date is not MISSING:
        date = raw_date.isoformat() if hasattr(raw_date, "isoformat") else str(raw_date)

    description = lookup("description")

    item = LineItem(
        description="" if description is MISSING else str(description),
        quantity=quantity,
        unit_price=unit_price or 0.0,
        discount_percent=discount,
        cgst_percent=cgst,
        sgst_percent=sgst,
        igst_percent=igst,
        known_gross_amount=gross,
        invoice_id=invoice_id,
        date=date,
        section=section,
        diagnostics=diagnostics,
    )
    for diag in diagnostics:
        logger.warning("line %r (invoice %s): %s", item.description, item.invoice_id, diag.message)
    return item


def flatten_invoices(
    payloads: Iterable[Mapping],
    rules: RuleSet | None = None,
    *,
    invoice_key: str | None = None,
) -> list[LineItem]:
    """Normalize flat rows and invoice documents carrying nested item lists."""
    rules = rules or RuleSet.default()
    nested = rules.aliases.nested
    out: list[LineItem] = []

    for payload in payloads:
        if not isinstance(payload, Mapping):
            continue
        children = [(key, payload[key]) for key in nested if isinstance(payload.get(key), list)]
        if not children:
            out.append(normalize(payload, rules, invoice_key=invoice_key))
            continue

        invoice_id = _parent_value(payload, rules, "invoice_id", invoice_key)
        invoice_date = _parent_value(payload, rules, "date", None)
        for key, rows in children:
            for row in rows:
                out.append(
                    normalize(
                        row,
                        rules,
                        invoice_id=invoice_id,
                        date=invoice_date,
                        section=nested[key],
                        invoice_key=invoice_key,
                    )
                )

    logger.debug("flattened %d line items", len(out))
    return out


def _parent_value(payload: Mapping, rules: RuleSet, name: str, override_key: str | None) -> str | None:
    keys = (override_key,) if override_key is not None else rules.aliases.aliases(name)
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        text = value.isoformat() if hasattr(value, "isoformat") else str(value).strip()
        if text:
            return text
    return None


def _rate(value: float | None, name: str, diagnostics: list[Diagnostic]) -> float:
    if value is None:
        return 0.0
    if value < 0:
        diagnostics.append(Diagnostic(code="negative_rate", field=name, message=f"{name}={value} clamped to 0"))
        return 0.0
    return value

