from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


RULES_FILENAME = "gst.yml"

_DEFAULT_FIELDS: dict[str, tuple[str, ...]] = {
    "description": ("description", "spareName", "partName", "serviceName", "name"),
    "quantity": ("quantity", "qty"),
    "unit_price": ("unitPrice", "unit_price", "rate", "price"),
    "discount_percent": ("discountPercent", "discount_percent", "discount"),
    "cgst_percent": ("cgstPercent", "cgst_percent", "cgst"),
    "sgst_percent": ("sgstPercent", "sgst_percent", "sgst"),
    "igst_percent": ("igstPercent", "igst_percent", "igst"),
    "gross": ("knownGrossAmount", "finalAmount", "totalAmount", "total", "amount"),
    "invoice_id": ("invoiceNumber", "billNo", "invoiceId", "vehicleRegId"),
    "date": ("transactionDate", "invDate", "invoiceDate", "date"),
}

_DEFAULT_NESTED: dict[str, str] = {"items": "item", "parts": "part", "labours": "labour"}


@dataclass(frozen=True, slots=True)
class BucketRules:
    rates: tuple[float, ...] = (0.0, 5.0, 12.0, 18.0, 28.0)
    tolerance: float = 0.1


@dataclass(frozen=True, slots=True)
class LineRules:
    prefer_intra_state: bool = True
    gross_mismatch_tolerance: float = 0.01


@dataclass(frozen=True, slots=True)
class FieldAliases:
    fields: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(_DEFAULT_FIELDS))
    nested: dict[str, str] = field(default_factory=lambda: dict(_DEFAULT_NESTED))

    def aliases(self, name: str) -> tuple[str, ...]:
        return self.fields.get(name) or _DEFAULT_FIELDS.get(name, ())


@dataclass(frozen=True, slots=True)
class RuleSet:
    buckets: BucketRules = field(default_factory=BucketRules)
    lines: LineRules = field(default_factory=LineRules)
    aliases: FieldAliases = field(default_factory=FieldAliases)

    @classmethod
    def default(cls) -> "RuleSet":
        return cls()

    @classmethod
    def load_from_dir(cls, rules_dir: Path) -> "RuleSet":
        return cls.from_mapping(_load_yaml(rules_dir / RULES_FILENAME))

    @classmethod
    def from_mapping(cls, data: dict | None) -> "RuleSet":
        data = data or {}
        buckets = data.get("buckets") or {}
        lines = data.get("lines") or {}
        fields = data.get("fields") or {}
        nested = data.get("nested")

        bucket_defaults = BucketRules()
        rates = buckets.get("rates")
        bucket_rules = BucketRules(
            rates=tuple(sorted(float(r) for r in rates)) if rates else bucket_defaults.rates,
            tolerance=float(buckets.get("tolerance", bucket_defaults.tolerance)),
        )

        line_defaults = LineRules()
        line_rules = LineRules(
            prefer_intra_state=bool(lines.get("prefer_intra_state", line_defaults.prefer_intra_state)),
            gross_mismatch_tolerance=float(
                lines.get("gross_mismatch_tolerance", line_defaults.gross_mismatch_tolerance)
            ),
        )

        merged_fields = dict(_DEFAULT_FIELDS)
        for name, values in fields.items():
            if isinstance(values, str):
                values = [values]
            merged_fields[str(name)] = tuple(str(v) for v in (values or []))

        aliases = FieldAliases(
            fields=merged_fields,
            nested={str(k): str(v) for k, v in nested.items()} if nested else dict(_DEFAULT_NESTED),
        )

        return cls(buckets=bucket_rules, lines=line_rules, aliases=aliases)


def _load_yaml(path: Path) -> dict | None:
    if not path.exists():
        raise FileNotFoundError(str(path))
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping at {path}, got {type(data).__name__}.")
    return data
