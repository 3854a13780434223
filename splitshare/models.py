"""
Data models for SplitShare - bills, participants and sessions
"""

import secrets
import string
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import List, Optional

from splitshare.config import DEFAULT_CURRENCY, SESSION_ID_LENGTH

BASE36_ALPHABET = string.digits + string.ascii_lowercase


@dataclass
class BillItem:
    """A single line on the receipt"""
    id: str
    name: str
    quantity: int = 1
    unit_price: float = 0.0
    total_price: float = 0.0


@dataclass
class BillCharges:
    sub_total: float = 0.0
    tax: float = 0.0
    service_charge: float = 0.0
    discount: float = 0.0
    total: float = 0.0


@dataclass
class Bill:
    """The whole receipt: items plus aggregate charges"""
    merchant: str = ""
    date: str = ""
    currency: str = DEFAULT_CURRENCY
    items: List[BillItem] = field(default_factory=list)
    charges: BillCharges = field(default_factory=BillCharges)

    def get_item(self, item_id) -> Optional[BillItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass
class ParticipantSelection:
    """How many units of one bill item a participant claims"""
    item_id: str
    quantity: int


@dataclass
class Participant:
    id: str
    name: str
    email: Optional[str] = None
    selections: List[ParticipantSelection] = field(default_factory=list)
    submitted: bool = False
    paid: bool = False
    user_id: Optional[int] = None  # chat identity

    def get_selection(self, item_id) -> Optional[ParticipantSelection]:
        for selection in self.selections:
            if selection.item_id == item_id:
                return selection
        return None


@dataclass
class Session:
    """A time-boxed sharing of one bill"""
    id: str
    bill: Bill
    organizer: str
    participants: List[Participant] = field(default_factory=list)
    expires_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    locked: bool = False
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    chat_id: Optional[int] = None
    organizer_name: str = ""

    def get_participant(self, participant_id) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def participant_for_user(self, user_id) -> Optional[Participant]:
        for participant in self.participants:
            if participant.user_id is not None and participant.user_id == user_id:
                return participant
        return None


@dataclass
class ParticipantSummary:
    """A participant's computed share. Derived, never persisted."""
    participant: Participant
    items: List[BillItem] = field(default_factory=list)
    sub_total: float = 0.0
    tax: float = 0.0
    service_charge: float = 0.0
    discount: float = 0.0
    total: float = 0.0

    @property
    def id(self):
        return self.participant.id

    @property
    def name(self):
        return self.participant.name

    @property
    def paid(self):
        return self.participant.paid

    @property
    def submitted(self):
        return self.participant.submitted


@dataclass
class SessionSummary:
    session: Optional[Session]
    participants: List[ParticipantSummary] = field(default_factory=list)


# --- IDs ---

def generate_session_id(length=SESSION_ID_LENGTH):
    """Short opaque base-36 token used in share links."""
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_participant_id():
    return secrets.token_hex(4)


# --- Mongo documents ---

def session_to_doc(session: Session) -> dict:
    doc = asdict(session)
    doc["_id"] = doc.pop("id")
    return doc


def bill_from_doc(doc) -> Bill:
    charges = doc.get("charges") or {}
    return Bill(
        merchant=doc.get("merchant", ""),
        date=doc.get("date", ""),
        currency=doc.get("currency") or DEFAULT_CURRENCY,
        items=[
            BillItem(
                id=str(i["id"]),
                name=i["name"],
                quantity=int(i.get("quantity", 1)),
                unit_price=float(i.get("unit_price", 0)),
                total_price=float(i.get("total_price", 0)),
            )
            for i in doc.get("items", [])
        ],
        charges=BillCharges(
            sub_total=float(charges.get("sub_total", 0)),
            tax=float(charges.get("tax", 0)),
            service_charge=float(charges.get("service_charge", 0)),
            discount=float(charges.get("discount", 0)),
            total=float(charges.get("total", 0)),
        ),
    )


def participant_from_doc(doc) -> Participant:
    return Participant(
        id=doc["id"],
        name=doc["name"],
        email=doc.get("email"),
        selections=[
            ParticipantSelection(item_id=str(s["item_id"]), quantity=int(s["quantity"]))
            for s in doc.get("selections", [])
        ],
        submitted=bool(doc.get("submitted", False)),
        paid=bool(doc.get("paid", False)),
        user_id=doc.get("user_id"),
    )


def session_from_doc(doc) -> Session:
    return Session(
        id=doc["_id"],
        bill=bill_from_doc(doc.get("bill") or {}),
        organizer=str(doc.get("organizer", "")),
        participants=[participant_from_doc(p) for p in doc.get("participants", [])],
        expires_at=_as_utc(doc["expires_at"]),
        locked=bool(doc.get("locked", False)),
        created=_as_utc(doc["created"]),
        chat_id=doc.get("chat_id"),
        organizer_name=doc.get("organizer_name", ""),
    )


def _as_utc(value):
    # pymongo hands back naive datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
