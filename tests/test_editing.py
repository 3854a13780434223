import pytest

from splitshare import editing
from splitshare.errors import SessionLockedError, ValidationError
from splitshare.models import Bill

from conftest import make_participant


def assert_consistent(bill):
    for item in bill.items:
        assert item.total_price == item.quantity * item.unit_price
    assert bill.charges.sub_total == sum(i.total_price for i in bill.items)
    c = bill.charges
    assert c.total == pytest.approx(c.sub_total + c.tax + c.service_charge - c.discount)


# --- Bill editor ---

def test_add_item_assigns_ids_and_recomputes():
    bill = Bill()
    editing.add_item(bill, "Naan", 3, 40)
    item = editing.add_item(bill, "  Dal  ", 1, 180.5)

    assert item.id == "item2"
    assert item.name == "Dal"
    assert bill.charges.sub_total == 300.5
    assert_consistent(bill)


def test_next_item_id_skips_past_highest():
    bill = Bill()
    editing.add_item(bill, "A", 1, 1)
    editing.add_item(bill, "B", 1, 1)
    editing.remove_item(bill, "item1")

    assert editing.next_item_id(bill) == "item3"


def test_update_item_recomputes(pizza_bill):
    editing.update_item(pizza_bill, "item2", quantity=3, unit_price=60)

    assert pizza_bill.get_item("item2").total_price == 180
    assert pizza_bill.charges.sub_total == 630
    assert pizza_bill.charges.total == 712.5
    assert_consistent(pizza_bill)


def test_set_charges_recomputes_total(pizza_bill):
    editing.set_charges(pizza_bill, tax=0, discount=50)

    assert pizza_bill.charges.service_charge == 27.5
    assert pizza_bill.charges.total == 527.5
    assert_consistent(pizza_bill)


def test_remove_item_recomputes(pizza_bill):
    editing.remove_item(pizza_bill, "item1")

    assert [i.id for i in pizza_bill.items] == ["item2", "item3"]
    assert pizza_bill.charges.sub_total == 250
    assert_consistent(pizza_bill)


@pytest.mark.parametrize("name, quantity, price", [
    ("", 1, 10),
    ("Tea", 0, 10),
    ("Tea", 1.5, 10),
    ("Tea", 1, -2),
    ("Tea", 1, "abc"),
])
def test_invalid_items_are_rejected(name, quantity, price):
    bill = Bill()
    with pytest.raises(ValidationError):
        editing.add_item(bill, name, quantity, price)
    assert bill.items == []


def test_failed_update_leaves_item_untouched(pizza_bill):
    with pytest.raises(ValidationError):
        editing.update_item(pizza_bill, "item2", quantity=5, unit_price=-1)

    item = pizza_bill.get_item("item2")
    assert (item.quantity, item.unit_price) == (2, 50)


def test_negative_charge_rejected(pizza_bill):
    with pytest.raises(ValidationError):
        editing.set_charges(pizza_bill, tax=-5)
    assert pizza_bill.charges.tax == 55


def test_unknown_item(pizza_bill):
    with pytest.raises(ValidationError):
        editing.update_item(pizza_bill, "item9", quantity=1)
    with pytest.raises(ValidationError):
        editing.remove_item(pizza_bill, "item9")


def test_session_edit_clamps_selections(session):
    alice = session.participants[0]
    alice.selections = make_participant("x", ("item1", 1), ("item2", 2)).selections

    editing.edit_session_bill(session, editing.update_item, "item2", quantity=1)
    assert editing.selected_quantity(alice, "item2") == 1

    editing.edit_session_bill(session, editing.remove_item, "item1")
    assert editing.selected_quantity(alice, "item1") == 0
    assert [s.item_id for s in alice.selections] == ["item2"]


def test_locked_session_bill_cannot_change(session):
    session.locked = True
    with pytest.raises(SessionLockedError):
        editing.edit_session_bill(session, editing.add_item, "Tea", 1, 20)
    assert len(session.bill.items) == 3


def test_replace_bill_drops_old_selections(session):
    alice = session.participants[0]
    editing.change_selection(session, alice, "item1", 1)

    new_bill = Bill(currency="INR")
    editing.add_item(new_bill, "Biryani", 2, 250)
    editing.replace_bill(session, new_bill)

    assert session.bill is new_bill
    assert alice.selections == []


# --- Selection editor ---

def test_increment_is_clamped_to_item_quantity(session):
    bob = session.participants[1]

    assert editing.change_selection(session, bob, "item2", 1) == 1
    assert editing.change_selection(session, bob, "item2", 1) == 2
    assert editing.change_selection(session, bob, "item2", 1) == 2
    assert editing.selected_quantity(bob, "item2") == 2


def test_decrement_never_goes_negative_and_removes_selection(session):
    bob = session.participants[1]

    assert editing.change_selection(session, bob, "item3", -1) == 0
    assert bob.selections == []

    editing.change_selection(session, bob, "item3", 1)
    assert len(bob.selections) == 1
    assert editing.change_selection(session, bob, "item3", -1) == 0
    assert bob.selections == []


def test_one_selection_per_item(session):
    bob = session.participants[1]
    editing.change_selection(session, bob, "item2", 1)
    editing.change_selection(session, bob, "item2", 1)

    assert [(s.item_id, s.quantity) for s in bob.selections] == [("item2", 2)]


def test_only_single_steps_allowed(session):
    with pytest.raises(ValidationError):
        editing.change_selection(session, session.participants[0], "item2", 2)


def test_selection_refused_when_locked_or_submitted(session):
    alice, bob = session.participants
    bob.submitted = True
    with pytest.raises(ValidationError):
        editing.change_selection(session, bob, "item1", 1)

    session.locked = True
    with pytest.raises(SessionLockedError):
        editing.change_selection(session, alice, "item1", 1)
    assert alice.selections == []


def test_selection_of_unknown_item(session):
    with pytest.raises(ValidationError):
        editing.change_selection(session, session.participants[0], "nope", 1)


def test_reset_selections(session):
    alice = session.participants[0]
    editing.change_selection(session, alice, "item1", 1)
    editing.change_selection(session, alice, "item2", 1)

    assert editing.reset_selections(alice) == 2
    assert alice.selections == []
