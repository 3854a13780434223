from datetime import datetime, timezone
from pathlib import Path
import sys

import pytest

# Make the package importable without installing it
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from splitshare.editing import recompute_bill
from splitshare.models import (
    Bill, BillCharges, BillItem, Participant, ParticipantSelection, Session,
)

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def make_participant(pid, *picks, name=None, user_id=None):
    """picks are (item_id, quantity) pairs"""
    return Participant(
        id=pid,
        name=name or pid.upper(),
        selections=[ParticipantSelection(item_id=i, quantity=q) for i, q in picks],
        user_id=user_id,
    )


@pytest.fixture
def pizza_bill():
    bill = Bill(
        merchant="Pizza Palace",
        date="2026-10-17",
        currency="INR",
        items=[
            BillItem(id="item1", name="Margherita Pizza", quantity=1, unit_price=300.0),
            BillItem(id="item2", name="Coke", quantity=2, unit_price=50.0),
            BillItem(id="item3", name="Garlic Bread", quantity=1, unit_price=150.0),
        ],
        charges=BillCharges(tax=55.0, service_charge=27.5, discount=0.0),
    )
    return recompute_bill(bill)


@pytest.fixture
def shared_bill():
    """One item, qty 2 at 100, with 20 tax and 10 service."""
    return Bill(
        merchant="Cafe",
        date="2026-10-17",
        currency="INR",
        items=[BillItem(id="item1", name="Thali", quantity=2, unit_price=100.0, total_price=200.0)],
        charges=BillCharges(sub_total=200.0, tax=20.0, service_charge=10.0, discount=0.0, total=230.0),
    )


@pytest.fixture
def session(pizza_bill):
    return Session(
        id="abc123",
        bill=pizza_bill,
        organizer="1",
        participants=[
            make_participant("p1", user_id=1, name="@alice"),
            make_participant("p2", user_id=2, name="@bob"),
        ],
        expires_at=NOW.replace(hour=12, minute=30),
        locked=False,
        created=NOW,
        chat_id=-100,
        organizer_name="@alice",
    )
