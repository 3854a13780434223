"""
Allocator - turns item selections into per-participant shares of a bill.

Each participant pays for the items they picked, plus a share of tax,
service charge and discount proportional to their item subtotal. Any
floating-point drift between the summed shares and the bill's own total
is pushed onto the participant with the largest total.

Nothing here mutates its inputs.
"""

import logging
from dataclasses import replace
from typing import List

from splitshare.config import ROUNDING_THRESHOLD
from splitshare.models import (
    Bill, BillItem, Participant, ParticipantSummary, Session, SessionSummary,
)

logger = logging.getLogger(__name__)


def participant_items(bill: Bill, selections) -> List[BillItem]:
    """The participant's view of the bill: selected items at selected quantities."""
    if not selections:
        return []

    items = []
    for item in bill.items:
        selection = next((s for s in selections if s.item_id == item.id), None)
        if selection is None or selection.quantity <= 0:
            continue
        items.append(replace(
            item,
            quantity=selection.quantity,
            total_price=item.unit_price * selection.quantity,
        ))
    return items


def participant_subtotal(items) -> float:
    return sum((item.total_price for item in items), 0.0)


def proportional_amount(amount, part_subtotal, bill_subtotal) -> float:
    if bill_subtotal == 0:
        return 0.0
    return (part_subtotal / bill_subtotal) * amount


def summarize_participant(bill: Bill, participant: Participant) -> ParticipantSummary:
    items = participant_items(bill, participant.selections)
    if not items:
        return ParticipantSummary(participant=participant)

    sub_total = participant_subtotal(items)
    charges = bill.charges
    tax = proportional_amount(charges.tax, sub_total, charges.sub_total)
    service_charge = proportional_amount(charges.service_charge, sub_total, charges.sub_total)
    discount = proportional_amount(charges.discount, sub_total, charges.sub_total)

    return ParticipantSummary(
        participant=participant,
        items=items,
        sub_total=sub_total,
        tax=tax,
        service_charge=service_charge,
        discount=discount,
        total=sub_total + tax + service_charge - discount,
    )


def reconcile(bill: Bill, summaries: List[ParticipantSummary]):
    """Push rounding drift onto the largest total so the shares add up to the bill."""
    allocated = sum((s.total for s in summaries), 0.0)
    rounding_error = bill.charges.total - allocated
    if abs(rounding_error) <= ROUNDING_THRESHOLD:
        return summaries

    # Only someone who actually picked items can absorb the difference
    candidates = [(i, s) for i, s in enumerate(summaries) if s.items]
    if not candidates:
        return summaries

    index, largest = sorted(candidates, key=lambda c: c[1].total, reverse=True)[0]
    logger.debug(
        f"Reconciling {rounding_error:.4f} onto participant {largest.id} "
        f"(bill total {bill.charges.total:.2f}, allocated {allocated:.2f})"
    )
    adjusted = list(summaries)
    adjusted[index] = replace(largest, total=largest.total + rounding_error)
    return adjusted


def summarize(bill: Bill, participants) -> SessionSummary:
    """Compute every participant's share, in input order."""
    summaries = [summarize_participant(bill, p) for p in participants]
    return SessionSummary(session=None, participants=reconcile(bill, summaries))


def summarize_session(session: Session) -> SessionSummary:
    summary = summarize(session.bill, session.participants)
    return SessionSummary(session=session, participants=summary.participants)


def unclaimed_items(bill: Bill, participants) -> List[BillItem]:
    """Items (with the remaining quantity) that nobody has picked yet."""
    remaining = []
    for item in bill.items:
        claimed = 0
        for participant in participants:
            selection = participant.get_selection(item.id)
            if selection:
                claimed += selection.quantity
        left = item.quantity - claimed
        if left > 0:
            remaining.append(replace(item, quantity=left, total_price=item.unit_price * left))
    return remaining
