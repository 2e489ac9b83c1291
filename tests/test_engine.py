from pathlib import Path

from garagegst.engine import GstEngine
from garagegst.rules.loader import RuleSet


def _write_rules(rules_dir: Path) -> None:
    rules_dir.mkdir(parents=True, exist_ok=True)

    (rules_dir / "gst.yml").write_text(
        "\n".join(
            [
                "version: 1",
                "buckets:",
                "  rates: [0, 5, 12, 18, 28]",
                "  tolerance: 0.1",
                "lines:",
                "  prefer_intra_state: true",
                "fields:",
                "  unit_price: [unitPrice, price, mrp]",
                "nested:",
                "  parts: part",
                "  labours: labour",
            ]
        )
        + "\n",
        encoding="utf-8",
    )


def _job_cards() -> list[dict]:
    return [
        {
            "invoiceNumber": "JC-101",
            "vehicleRegId": "MH12AB1234",
            "invDate": "2024-05-04",
            "parts": [
                {"partName": "Brake pad", "quantity": 2, "unitPrice": "800", "cgstPercent": 14, "sgstPercent": 14},
                {"partName": "Engine oil", "quantity": 1, "unitPrice": 500, "discountPercent": 10, "igstPercent": 18},
            ],
            "labours": [
                {"serviceName": "Brake service", "totalAmount": 590, "cgstPercent": 9, "sgstPercent": 9},
            ],
        },
        {
            "invoiceNumber": "JC-102",
            "vehicleRegId": "MH12AB1234",
            "invDate": "2024-05-20",
            "parts": [{"partName": "Wiper", "quantity": 1, "unitPrice": 250, "cgstPercent": 6, "sgstPercent": 6}],
        },
        {
            "billNo": "B-7",
            "transactionDate": "2024-06-01",
            "spareName": "Bulb",
            "quantity": "3",
            "price": "40",
            "cgst": 2.5,
            "sgst": 2.5,
        },
    ]


def test_engine_end_to_end_with_rules_from_yaml(tmp_path: Path) -> None:
    rules_dir = tmp_path / "data" / "rules"
    _write_rules(rules_dir)

    engine = GstEngine(RuleSet.load_from_dir(rules_dir))

    horn = {"billNo": "B-8", "transactionDate": "2024-06-02", "spareName": "Horn", "quantity": 1, "mrp": 300, "cgst": 9, "sgst": 9}
    lines = engine.compute([*_job_cards(), horn])

    assert [line.section for line in lines] == ["part", "part", "labour", "part", None, None]
    brake_pad, oil, labour, wiper, bulb, horn_line = lines
    assert brake_pad.taxable_amount == 1600
    assert brake_pad.final_amount == 2048
    assert oil.taxable_amount == 450
    assert oil.igst_amount == 81
    assert labour.mode == "reverse"
    assert labour.taxable_amount == 500
    assert bulb.final_amount == 126
    assert horn_line.final_amount == 354

    totals = engine.invoice_totals(_job_cards())
    assert list(totals) == ["JC-101", "JC-102", "B-7"]
    assert totals["JC-101"].grand_total == 2048 + 531 + 590
    assert totals["JC-102"].grand_total == 280


def test_engine_groups_by_vehicle_when_asked() -> None:
    engine = GstEngine()

    totals = engine.invoice_totals(_job_cards(), invoice_key="vehicleRegId")

    assert list(totals) == ["MH12AB1234", "UNKNOWN"]
    assert totals["MH12AB1234"].line_count == 4


def test_engine_gst_report_for_may() -> None:
    engine = GstEngine()

    report = engine.gst_report(_job_cards(), "2024-05-01", "2024-05-31", include_rates=[0])

    assert [b.bucket for b in report.buckets] == ["0", "12", "18", "28"]
    assert report.bucket("18").line_count == 2
    assert report.bucket("18").taxable_sum == 950
    assert report.bucket("28").taxable_sum == 1600
    assert report.out_of_range_count == 1
    assert report.skipped_count == 0


def test_engine_sale_account_and_settlement() -> None:
    engine = GstEngine()

    rows = engine.sale_account_report(_job_cards(), start="2024-05-01", end="2024-05-31")
    assert list(rows) == ["JC-101", "JC-102"]
    assert [b.bucket for b in rows["JC-101"].buckets] == ["18", "28"]

    settlement = engine.settle(_job_cards(), "JC-102", advance_amount=100)
    assert settlement is not None
    assert settlement.section_totals == {"part": 280.0}
    assert settlement.balance_due == 180
    assert settlement.amount_in_words == "One Hundred Eighty Only"

    assert engine.settle(_job_cards(), "JC-999") is None


def test_engine_detect_reads_repository_rules() -> None:
    engine = GstEngine.detect(Path(__file__).resolve().parent)

    assert engine.rules.buckets.rates == (0.0, 5.0, 12.0, 18.0, 28.0)


def test_engine_uses_configured_gross_tolerance() -> None:
    row = {"billNo": "B-9", "quantity": 1, "unitPrice": 100, "cgstPercent": 9, "sgstPercent": 9, "totalAmount": 120}

    strict = GstEngine().compute([row])[0]
    loose = GstEngine(RuleSet.from_mapping({"lines": {"gross_mismatch_tolerance": 5}})).compute([row])[0]

    assert [d.code for d in strict.diagnostics] == ["gross_mismatch"]
    assert loose.diagnostics == []
    assert loose.final_amount == 118
