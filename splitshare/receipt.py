"""
Receipt parsing with Google Gemini.

analyze_receipt() sends the photo to Gemini and turns the JSON it answers
with into a Bill. Anything that doesn't look like a complete bill is
rejected, so a bad photo never reaches the allocator.
"""

import base64
import json
import logging
import math
import re
from datetime import date

import httpx

from splitshare.config import (
    DEFAULT_CURRENCY, GEMINI_API_KEY, GEMINI_API_URL, GEMINI_MODEL,
    RECEIPT_TIMEOUT, RECEIPT_TOTAL_TOLERANCE,
)
from splitshare.editing import recompute_bill
from splitshare.errors import ReceiptParseError
from splitshare.models import Bill, BillCharges, BillItem

logger = logging.getLogger(__name__)

RECEIPT_PROMPT = (
    "This is a receipt photo. The expected currency is {currency}.\n"
    "Extract all items, prices, quantities and totals from this receipt.\n"
    "Respond ONLY with a JSON object, no other text, no markdown.\n\n"
    "Format:\n"
    '{{"merchant": "name", "date": "YYYY-MM-DD", "currency": "{currency}", '
    '"items": [{{"name": "item name", "quantity": 1, "unitPrice": 12.5, "totalPrice": 12.5}}, ...], '
    '"charges": {{"subTotal": 0, "tax": 0, "serviceCharge": 0, "discount": 0, "total": 0}}}}\n\n'
    "Rules:\n"
    "- Include individual items only, not subtotal/total/tax/service charge lines\n"
    "- Use the original item name from the receipt\n"
    "- Prices are numbers without currency symbols\n"
    "- quantity is a whole number; unitPrice is the price of one unit\n"
    "- tax is the sum of all tax lines (VAT, GST, CGST+SGST...)\n"
    "- discount is a positive number, 0 if there is none\n"
    '- If you can\'t read the receipt clearly, return: {{"items": []}}\n'
)


def detect_mime_type(image_bytes):
    if image_bytes[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    if image_bytes[:4] == b'RIFF' and image_bytes[8:12] == b'WEBP':
        return "image/webp"
    return "image/jpeg"


def extract_json_text(text):
    """Strip the ```json fences Gemini sometimes wraps its answer in."""
    text = text.strip()
    if "```" in text:
        match = re.search(r'```(?:json)?\s*(.*?)```', text, re.DOTALL)
        if match:
            text = match.group(1).strip()
    return text


def _number(value, label):
    if value is None or value == "":
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ReceiptParseError(f"Receipt has an unreadable {label}: {value!r}")
    if not math.isfinite(number):
        raise ReceiptParseError(f"Receipt has a non-numeric {label}: {value!r}")
    if number < 0:
        raise ReceiptParseError(f"Receipt has a negative {label}: {number}")
    return number


def _first(data, *keys):
    for key in keys:
        if key in data:
            return data[key]
    return None


def bill_from_payload(payload, currency=DEFAULT_CURRENCY):
    """Normalize Gemini's JSON into a Bill whose totals are internally consistent."""
    if not isinstance(payload, dict):
        raise ReceiptParseError("Receipt response is not a JSON object.")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list):
        raise ReceiptParseError("Receipt response has no item list.")

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name", "")).strip()
        if not name:
            continue

        quantity = _number(raw.get("quantity", 1), "quantity") or 1
        if quantity != int(quantity):
            # Weighed goods (1.5 kg...) count as one line at the line price
            unit_price = _number(_first(raw, "totalPrice", "total_price", "price"), "price")
            quantity = 1
        else:
            quantity = int(quantity)
            unit_price = _number(_first(raw, "unitPrice", "unit_price"), "unit price")
            line_total = _number(_first(raw, "totalPrice", "total_price", "price"), "price")
            if unit_price == 0 and line_total > 0:
                unit_price = line_total / quantity

        items.append(BillItem(id=f"item{len(items) + 1}", name=name, quantity=quantity, unit_price=unit_price))

    if not items:
        raise ReceiptParseError("No items found on the receipt.")

    charges = payload.get("charges") or {}
    if not isinstance(charges, dict):
        raise ReceiptParseError("Receipt charges are not a JSON object.")

    bill = Bill(
        merchant=str(payload.get("merchant") or "").strip(),
        date=str(payload.get("date") or date.today().isoformat()),
        currency=str(payload.get("currency") or currency).upper(),
        items=items,
        charges=BillCharges(
            tax=_number(charges.get("tax"), "tax"),
            service_charge=_number(_first(charges, "serviceCharge", "service_charge"), "service charge"),
            discount=_number(charges.get("discount"), "discount"),
        ),
    )
    recompute_bill(bill)

    stated_total = _first(charges, "total")
    if stated_total is not None:
        stated_total = _number(stated_total, "total")
        if abs(stated_total - bill.charges.total) > RECEIPT_TOTAL_TOLERANCE:
            logger.warning(
                f"Receipt total {stated_total:.2f} doesn't match items and charges "
                f"({bill.charges.total:.2f}), using the computed total"
            )
    return bill


def parse_gemini_response(data, currency=DEFAULT_CURRENCY):
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise ReceiptParseError("Gemini returned no content.")

    try:
        payload = json.loads(extract_json_text(text))
    except json.JSONDecodeError as e:
        raise ReceiptParseError(f"Gemini returned invalid JSON: {e}")
    return bill_from_payload(payload, currency)


async def analyze_receipt(image_bytes, currency=DEFAULT_CURRENCY, client=None, api_key=None):
    """Extract a Bill from a receipt image. Returns None if it can't."""
    api_key = api_key or GEMINI_API_KEY
    if not api_key:
        logger.error("GEMINI_API_KEY not set")
        return None

    payload = {
        "contents": [
            {
                "parts": [
                    {
                        "inline_data": {
                            "mime_type": detect_mime_type(image_bytes),
                            "data": base64.b64encode(image_bytes).decode("utf-8"),
                        }
                    },
                    {"text": RECEIPT_PROMPT.format(currency=currency)},
                ]
            }
        ],
        "generationConfig": {
            "temperature": 0.1,
            "maxOutputTokens": 2000,
            "responseMimeType": "application/json",
        },
    }
    url = f"{GEMINI_API_URL}/{GEMINI_MODEL}:generateContent"

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=RECEIPT_TIMEOUT) as c:
                resp = await c.post(url, params={"key": api_key}, json=payload)
        else:
            resp = await client.post(url, params={"key": api_key}, json=payload)

        logger.info(f"Gemini API status={resp.status_code} body={resp.text[:500]}")
        resp.raise_for_status()
        bill = parse_gemini_response(resp.json(), currency)
    except httpx.HTTPError as e:
        logger.error(f"Gemini API error: {e}")
        return None
    except (ReceiptParseError, ValueError) as e:
        logger.error(f"Couldn't read receipt: {e}")
        return None

    logger.info(
        f"Gemini extracted {len(bill.items)} items, subtotal={bill.charges.sub_total:.2f}, "
        f"total={bill.charges.total:.2f} {bill.currency}"
    )
    return bill
