"""
Chat message formatting (Telegram Markdown).
"""

from datetime import datetime
from urllib.parse import urlencode

from telegram.helpers import escape_markdown

from splitshare.allocator import unclaimed_items
from splitshare.config import PAYMENT_HANDLE, PAYMENT_NAME
from splitshare.editing import selected_quantity
from splitshare.lifecycle import format_time_left, time_left

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "THB": "฿",
    "JPY": "¥",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "SGD": "S$",
}


def md(text):
    """Escape user-supplied text (names, merchants) for Telegram Markdown."""
    return escape_markdown(str(text), version=1)


def currency_symbol(currency):
    return CURRENCY_SYMBOLS.get((currency or "").upper(), f"{currency} ")


def format_money(amount, currency):
    symbol = currency_symbol(currency)
    # Avoid "-0.00" after reconciliation nudges
    if abs(amount) < 0.005:
        amount = 0.0
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(value):
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)


def payment_link(session, handle=PAYMENT_HANDLE, name=PAYMENT_NAME):
    """Static UPI deep link participants can pay the organizer through."""
    query = urlencode({"pa": handle, "pn": name, "cu": session.bill.currency}, safe="@")
    return f"upi://pay?{query}"


def format_bill(bill):
    if not bill.items:
        return "📋 No items yet."

    lines = [f"📋 *{md(bill.merchant or 'Bill')}* ({bill.currency})"]
    if bill.date:
        lines.append(f"📅 {bill.date}")
    lines.append("")

    for n, item in enumerate(bill.items, 1):
        lines.append(
            f"`#{n}` {md(item.name)} — {item.quantity} × {format_money(item.unit_price, bill.currency)}"
            f" = {format_money(item.total_price, bill.currency)}"
        )

    charges = bill.charges
    lines.append("")
    lines.append(f"💰 Subtotal: {format_money(charges.sub_total, bill.currency)}")
    if charges.tax:
        lines.append(f"🧾 + Tax: {format_money(charges.tax, bill.currency)}")
    if charges.service_charge:
        lines.append(f"🧾 + Service: {format_money(charges.service_charge, bill.currency)}")
    if charges.discount:
        lines.append(f"🏷️ − Discount: {format_money(charges.discount, bill.currency)}")
    lines.append(f"💰 *Total: {format_money(charges.total, bill.currency)}*")
    return "\n".join(lines)


def format_selection(session, participant):
    bill = session.bill
    lines = [f"🛒 *{md(participant.name)}'s picks*"]
    if not participant.selections:
        lines.append("    _You haven't selected any items yet_")
        return "\n".join(lines)

    subtotal = 0.0
    for item in bill.items:
        qty = selected_quantity(participant, item.id)
        if qty:
            subtotal += item.unit_price * qty
            lines.append(f"    • {qty} × {md(item.name)}: {format_money(item.unit_price * qty, bill.currency)}")
    lines.append(f"    Items: {format_money(subtotal, bill.currency)}")
    return "\n".join(lines)


def format_session_status(session, now=None):
    lines = [f"🧾 Session `{session.id}`"]
    if session.locked:
        lines.append("🔒 Locked — use /summary to see what everyone owes")
    else:
        lines.append(f"⏳ Time left: {format_time_left(time_left(session, now))}")

    lines.append(f"👥 Participants: {len(session.participants)}")
    for p in session.participants:
        mark = "✅" if p.submitted else "✏️"
        lines.append(f"    {mark} {md(p.name)}")
    return "\n".join(lines)


def format_summary(summary):
    session = summary.session
    bill = session.bill
    currency = bill.currency
    lines = []

    lines.append("💸 *BILL SPLIT SUMMARY*")
    lines.append("━━━━━━━━━━━━━━━━━━━━")
    lines.append(f"🏪 {md(bill.merchant or 'Bill')}  `{session.id}`")
    lines.append(f"📅 {bill.date or format_date(session.created)}")
    lines.append(f"💰 *Total: {format_money(bill.charges.total, currency)}*")
    lines.append(f"{'🔒 Locked' if session.locked else '🔓 Open'} · 👥 {len(summary.participants)}")
    lines.append("━━━━━━━━━━━━━━━━━━━━\n")

    for ps in summary.participants:
        paid = " ✅ _paid_" if ps.paid else ""
        lines.append(f"👤 *{md(ps.name)}*{paid}")

        if not ps.items:
            lines.append("    _No items picked_")
            lines.append("")
            continue

        for item in ps.items:
            lines.append(f"    • {item.quantity} × {md(item.name)}: {format_money(item.total_price, currency)}")
        lines.append(f"    Items: {format_money(ps.sub_total, currency)}")
        if ps.tax:
            lines.append(f"    + Tax: {format_money(ps.tax, currency)}")
        if ps.service_charge:
            lines.append(f"    + Service: {format_money(ps.service_charge, currency)}")
        if ps.discount:
            lines.append(f"    − Discount: {format_money(ps.discount, currency)}")
        lines.append(f"    → *Pay: {format_money(ps.total, currency)}*")
        lines.append("")

    unclaimed = unclaimed_items(bill, session.participants)
    if unclaimed:
        lines.append("⚠️ *Unclaimed items:*")
        for item in unclaimed:
            lines.append(f"    • {item.quantity} × {md(item.name)}: {format_money(item.total_price, currency)}")
        lines.append("")

    lines.append("━━━━━━━━━━━━━━━━━━━━")
    lines.append("Please transfer your share 🙏")
    return "\n".join(lines)


def format_history(sessions):
    if not sessions:
        return "No past bills found."

    lines = ["📜 *Recent Bills*\n"]
    for s in sessions:
        lines.append(
            f"• {format_date(s.created)} — {md(s.bill.merchant or 'Bill')} "
            f"{format_money(s.bill.charges.total, s.bill.currency)} "
            f"({len(s.bill.items)} items, {len(s.participants)} people) `{s.id}`"
        )
    return "\n".join(lines)
