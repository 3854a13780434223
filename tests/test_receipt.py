import asyncio
import json

import httpx
import pytest

from splitshare.errors import ReceiptParseError
from splitshare.receipt import (
    analyze_receipt, bill_from_payload, detect_mime_type, extract_json_text,
)

PIZZA_RECEIPT = {
    "merchant": "Pizza Palace",
    "date": "2026-10-17",
    "currency": "INR",
    "items": [
        {"name": "Margherita Pizza", "quantity": 1, "unitPrice": 300.0, "totalPrice": 300.0},
        {"name": "Coke", "quantity": 2, "unitPrice": 50.0, "totalPrice": 100.0},
        {"name": "Garlic Bread", "quantity": 1, "unitPrice": 150.0, "totalPrice": 150.0},
    ],
    "charges": {"subTotal": 550.0, "tax": 55.0, "serviceCharge": 27.5, "discount": 0.0, "total": 632.5},
}


def gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def run_analyze(handler, image=b"\xff\xd8fakejpeg"):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await analyze_receipt(image, "INR", client=client, api_key="test-key")
    return asyncio.run(go())


def test_bill_from_payload():
    bill = bill_from_payload(PIZZA_RECEIPT)

    assert bill.merchant == "Pizza Palace"
    assert [i.id for i in bill.items] == ["item1", "item2", "item3"]
    assert bill.items[1].quantity == 2
    assert bill.charges.sub_total == 550
    assert bill.charges.total == 632.5


def test_payload_totals_are_recomputed():
    payload = {
        "items": [{"name": "Tea", "quantity": 2, "totalPrice": "40"}],
        "charges": {"subTotal": 999, "tax": 4, "total": 1},
    }

    bill = bill_from_payload(payload, currency="inr")

    assert bill.items[0].unit_price == 20
    assert bill.charges.sub_total == 40
    assert bill.charges.total == 44
    assert bill.currency == "INR"


def test_fractional_quantity_becomes_one_line():
    bill = bill_from_payload({"items": [{"name": "Paneer (kg)", "quantity": 1.5, "totalPrice": 300}]})

    assert (bill.items[0].quantity, bill.items[0].unit_price) == (1, 300)


def test_nameless_lines_are_skipped():
    bill = bill_from_payload({"items": [{"name": "", "unitPrice": 5}, "junk", {"name": "Lassi", "unitPrice": 60}]})

    assert [i.name for i in bill.items] == ["Lassi"]


@pytest.mark.parametrize("payload", [
    [],
    {"items": []},
    {"items": "nope"},
    {"items": [{"name": "Tea", "unitPrice": -3}]},
    {"items": [{"name": "Tea", "unitPrice": "abc"}]},
    {"items": [{"name": "Tea", "unitPrice": 3}], "charges": "lots"},
    {"items": [{"name": "Tea", "quantity": 1, "unitPrice": float("nan")}]},
    {"items": [{"name": "Tea", "quantity": float("inf"), "unitPrice": 3}]},
    {"items": [{"name": "Tea", "unitPrice": 3}], "charges": {"tax": float("inf")}},
])
def test_malformed_payloads_are_rejected(payload):
    with pytest.raises(ReceiptParseError):
        bill_from_payload(payload)


def test_extract_json_text():
    assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json_text('  {"a": 1} ') == '{"a": 1}'


def test_detect_mime_type():
    assert detect_mime_type(b'\x89PNG\r\n\x1a\nrest') == "image/png"
    assert detect_mime_type(b'\xff\xd8\xff') == "image/jpeg"
    assert detect_mime_type(b'RIFF\x00\x00\x00\x00WEBPVP8') == "image/webp"


def test_analyze_receipt_success():
    seen = {}

    def handler(request):
        seen["key"] = request.url.params["key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_body("```json\n" + json.dumps(PIZZA_RECEIPT) + "\n```"))

    bill = run_analyze(handler)

    assert bill is not None
    assert bill.charges.total == 632.5
    assert seen["key"] == "test-key"
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[0]["inline_data"]["mime_type"] == "image/jpeg"


def test_analyze_receipt_http_error_returns_none():
    bill = run_analyze(lambda request: httpx.Response(500, text="boom"))
    assert bill is None


def test_analyze_receipt_garbage_returns_none():
    bill = run_analyze(lambda request: httpx.Response(200, json=gemini_body("I can't read this")))
    assert bill is None


def test_analyze_receipt_empty_candidates_returns_none():
    bill = run_analyze(lambda request: httpx.Response(200, json={"candidates": []}))
    assert bill is None


def test_analyze_receipt_without_key_returns_none(monkeypatch):
    monkeypatch.setattr("splitshare.receipt.GEMINI_API_KEY", "")
    assert asyncio.run(analyze_receipt(b"img")) is None


@pytest.mark.parametrize("text", [
    '{"items": [{"name": "Tea", "quantity": 1, "unitPrice": NaN}]}',
    '{"items": [{"name": "Tea", "quantity": Infinity, "unitPrice": 3}]}',
])
def test_analyze_receipt_non_finite_numbers_return_none(text):
    bill = run_analyze(lambda request: httpx.Response(200, json=gemini_body(text)))
    assert bill is None
