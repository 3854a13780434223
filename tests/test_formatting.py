from splitshare.allocator import summarize_session
from splitshare.editing import change_selection
from splitshare.formatting import (
    format_bill, format_history, format_money, format_selection, format_summary, payment_link,
)


def test_format_money():
    assert format_money(1234.5, "INR") == "₹1,234.50"
    assert format_money(-3, "USD") == "-$3.00"
    assert format_money(-0.001, "USD") == "$0.00"
    assert format_money(10, "CHF") == "CHF 10.00"


def test_payment_link(session):
    assert payment_link(session, handle="me@okbank", name="Alice") == "upi://pay?pa=me@okbank&pn=Alice&cu=INR"


def test_format_bill(pizza_bill):
    text = format_bill(pizza_bill)

    assert "Pizza Palace" in text
    assert "`#2` Coke — 2 × ₹50.00 = ₹100.00" in text
    assert "Total: ₹632.50" in text


def test_format_selection(session):
    alice = session.participants[0]
    assert "haven't selected" in format_selection(session, alice)

    change_selection(session, alice, "item2", 1)
    text = format_selection(session, alice)
    assert "1 × Coke: ₹50.00" in text


def test_format_summary(session):
    alice, bob = session.participants
    change_selection(session, alice, "item1", 1)
    change_selection(session, bob, "item2", 1)
    bob.paid = True

    text = format_summary(summarize_session(session))

    assert "*@alice*" in text
    assert "Pay: ₹" in text
    assert "*@bob* ✅ _paid_" in text
    assert "Unclaimed items" in text
    assert "1 × Garlic Bread" in text


def test_format_summary_with_no_picks(session):
    text = format_summary(summarize_session(session))

    assert text.count("_No items picked_") == 2


def test_format_history(session):
    assert format_history([]) == "No past bills found."
    assert "`abc123`" in format_history([session])


def test_user_text_is_escaped_for_markdown(session):
    alice, bob = session.participants
    alice.name = "@john_doe"
    session.bill.items[0].name = "Pizza *large*"
    session.bill.merchant = "Bob's_Diner"
    change_selection(session, alice, "item1", 1)

    text = format_summary(summarize_session(session))

    assert "*@john\\_doe*" in text
    assert "Pizza \\*large\\*" in text
    assert "Bob's\\_Diner" in text
    assert "@john\\_doe's picks" in format_selection(session, alice)
    assert "Pizza \\*large\\*" in format_bill(session.bill)
