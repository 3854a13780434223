"""
Editing a bill (organizer) and item selections (participants).

Every bill edit ends in recompute_bill(), the one place derived totals
are maintained.
"""

import logging
import math
import re

from splitshare.errors import SessionLockedError, ValidationError
from splitshare.models import BillItem, ParticipantSelection

logger = logging.getLogger(__name__)


# --- Bill editor ---

def recompute_bill(bill):
    """Refresh item totals, subtotal and total after any change to the bill."""
    for item in bill.items:
        item.total_price = item.quantity * item.unit_price

    charges = bill.charges
    charges.sub_total = sum((item.total_price for item in bill.items), 0.0)
    charges.total = charges.sub_total + charges.tax + charges.service_charge - charges.discount
    return bill


def next_item_id(bill):
    highest = 0
    for item in bill.items:
        match = re.fullmatch(r"item(\d+)", item.id)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"item{highest + 1}"


def _check_name(name):
    name = (name or "").strip()
    if not name:
        raise ValidationError("Item name can't be empty.")
    return name


def _check_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a whole number of at least 1.")
    return quantity


def _check_amount(value, label):
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}.")
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"{label.capitalize()} can't be negative.")
    return value


def add_item(bill, name, quantity, unit_price):
    item = BillItem(
        id=next_item_id(bill),
        name=_check_name(name),
        quantity=_check_quantity(quantity),
        unit_price=_check_amount(unit_price, "price"),
    )
    bill.items.append(item)
    recompute_bill(bill)
    return item


def update_item(bill, item_id, name=None, quantity=None, unit_price=None):
    item = bill.get_item(item_id)
    if item is None:
        raise ValidationError(f"Item {item_id} not found.")

    # Validate everything before touching the item
    new_name = _check_name(name) if name is not None else item.name
    new_quantity = _check_quantity(quantity) if quantity is not None else item.quantity
    new_price = _check_amount(unit_price, "price") if unit_price is not None else item.unit_price

    item.name = new_name
    item.quantity = new_quantity
    item.unit_price = new_price
    recompute_bill(bill)
    return item


def remove_item(bill, item_id):
    item = bill.get_item(item_id)
    if item is None:
        raise ValidationError(f"Item {item_id} not found.")
    bill.items.remove(item)
    recompute_bill(bill)
    return item


def set_charges(bill, tax=None, service_charge=None, discount=None):
    tax = _check_amount(tax, "tax") if tax is not None else bill.charges.tax
    service_charge = (
        _check_amount(service_charge, "service charge")
        if service_charge is not None else bill.charges.service_charge
    )
    discount = _check_amount(discount, "discount") if discount is not None else bill.charges.discount

    bill.charges.tax = tax
    bill.charges.service_charge = service_charge
    bill.charges.discount = discount
    recompute_bill(bill)
    return bill.charges


def edit_session_bill(session, edit, *args, **kwargs):
    """Apply a bill edit to a session, then bring every selection back in range."""
    if session.locked:
        raise SessionLockedError(session.id)
    result = edit(session.bill, *args, **kwargs)
    for participant in session.participants:
        clamp_selections(session.bill, participant)
    return result


def replace_bill(session, bill):
    """Swap in a freshly parsed receipt. Existing selections are dropped."""
    if session.locked:
        raise SessionLockedError(session.id)
    recompute_bill(bill)
    session.bill = bill
    for participant in session.participants:
        reset_selections(participant)
    logger.info(f"Session {session.id}: bill replaced ({len(bill.items)} items)")
    return bill


# --- Selection editor ---

def selected_quantity(participant, item_id):
    selection = participant.get_selection(item_id)
    return selection.quantity if selection else 0


def change_selection(session, participant, item_id, delta):
    """Step a participant's quantity for one item by +1 or -1. Returns the new quantity."""
    if delta not in (1, -1):
        raise ValidationError("Selections change one unit at a time.")
    if session.locked:
        raise SessionLockedError(session.id)
    if participant.submitted:
        raise ValidationError("You've already submitted your selections.")

    item = session.bill.get_item(item_id)
    if item is None:
        raise ValidationError(f"Item {item_id} not found.")

    current = selected_quantity(participant, item_id)
    new_qty = max(0, min(current + delta, item.quantity))
    _store_selection(participant, item_id, new_qty)
    return new_qty


def _store_selection(participant, item_id, quantity):
    selection = participant.get_selection(item_id)
    if quantity <= 0:
        if selection is not None:
            participant.selections.remove(selection)
    elif selection is not None:
        selection.quantity = quantity
    else:
        participant.selections.append(ParticipantSelection(item_id=item_id, quantity=quantity))


def clamp_selections(bill, participant):
    """Drop selections for vanished items and cap the rest at the item's quantity."""
    kept = []
    for selection in participant.selections:
        item = bill.get_item(selection.item_id)
        if item is None:
            continue
        quantity = min(selection.quantity, item.quantity)
        if quantity > 0:
            kept.append(ParticipantSelection(item_id=selection.item_id, quantity=quantity))
    participant.selections = kept
    return kept


def reset_selections(participant):
    count = len(participant.selections)
    participant.selections = []
    return count
