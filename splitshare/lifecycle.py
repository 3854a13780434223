"""
Session lifecycle: OPEN -> LOCKED, and each participant's SELECTING -> SUBMITTED.

Locking happens either when the session expires or when the organizer
asks for it, and is never undone. The expiry is driven by a run-once job
on the bot's JobQueue.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum

from splitshare.config import (
    DEFAULT_SESSION_MINUTES, MAX_SESSION_MINUTES, MIN_SESSION_MINUTES,
)
from splitshare.errors import SessionLockedError, ValidationError
from splitshare.models import (
    Participant, Session, generate_participant_id, generate_session_id,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    OPEN = "open"
    LOCKED = "locked"


class ParticipantState(Enum):
    SELECTING = "selecting"
    SUBMITTED = "submitted"


def _now():
    return datetime.now(timezone.utc)


def new_session(bill, organizer, minutes=DEFAULT_SESSION_MINUTES, now=None,
                chat_id=None, organizer_name="", session_id=None):
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ValidationError("Time limit must be a whole number of minutes.")
    if not MIN_SESSION_MINUTES <= minutes <= MAX_SESSION_MINUTES:
        raise ValidationError(
            f"Time limit must be between {MIN_SESSION_MINUTES} and {MAX_SESSION_MINUTES} minutes."
        )

    now = now or _now()
    session = Session(
        id=session_id or generate_session_id(),
        bill=bill,
        organizer=str(organizer),
        participants=[],
        expires_at=now + timedelta(minutes=minutes),
        locked=False,
        created=now,
        chat_id=chat_id,
        organizer_name=organizer_name,
    )
    logger.info(f"Session {session.id} created by {organizer_name or organizer}, expires in {minutes} min")
    return session


def session_state(session):
    return SessionState.LOCKED if session.locked else SessionState.OPEN


def participant_state(session, participant):
    if participant.submitted or session.locked:
        return ParticipantState.SUBMITTED
    return ParticipantState.SELECTING


def is_organizer(session, user_id):
    return session.organizer == str(user_id)


def lock(session, reason="organizer"):
    """Lock the session. Returns True only for the call that actually locked it."""
    if session.locked:
        return False
    session.locked = True
    logger.info(f"Session {session.id} locked ({reason})")
    return True


def expire_if_due(session, now=None):
    now = now or _now()
    if not session.locked and now >= session.expires_at:
        return lock(session, reason="expired")
    return False


def ensure_open(session, now=None):
    expire_if_due(session, now)
    if session.locked:
        raise SessionLockedError(session.id)


def time_left(session, now=None):
    if session.locked:
        return timedelta(0)
    now = now or _now()
    return max(timedelta(0), session.expires_at - now)


def format_time_left(remaining):
    seconds = int(remaining.total_seconds())
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def add_participant(session, name, email=None, user_id=None):
    name = (name or "").strip()
    email = (email or "").strip() or None
    if not name:
        raise ValidationError("Please enter your name.")
    if session.locked:
        raise SessionLockedError(session.id)

    for existing in session.participants:
        if user_id is not None and existing.user_id == user_id:
            raise ValidationError(f"{existing.name} is already in this bill.")
        if existing.name == name and existing.email == email:
            raise ValidationError(f"{name} is already in this bill.")

    participant = Participant(
        id=generate_participant_id(),
        name=name,
        email=email,
        user_id=user_id,
    )
    session.participants.append(participant)
    return participant


def find_participant(session, name):
    name = (name or "").strip().lower()
    return next((p for p in session.participants if p.name.lower() == name), None)


def claim_participant(session, name, user_id):
    """Attach a chat user to a participant the organizer added by name.

    Returns the participant, or None if nobody unclaimed goes by that name.
    """
    if session.locked:
        raise SessionLockedError(session.id)
    participant = find_participant(session, name)
    if participant is None or participant.user_id is not None:
        return None
    participant.user_id = user_id
    return participant


def submit(session, participant):
    """Freeze a participant's selections. Returns False if they had already submitted."""
    if session.locked:
        raise SessionLockedError(session.id)
    if participant.submitted:
        return False
    participant.submitted = True
    logger.info(f"Session {session.id}: {participant.name} submitted {len(participant.selections)} selections")
    return True


def all_submitted(session):
    return bool(session.participants) and all(
        participant_state(session, p) == ParticipantState.SUBMITTED for p in session.participants
    )


def toggle_paid(participant):
    participant.paid = not participant.paid
    return participant.paid


# --- Lock timer ---

def lock_job_name(session_id):
    return f"lock:{session_id}"


def arm_lock_timer(job_queue, session, callback):
    """Schedule the one-shot expiry lock. Re-arming replaces any earlier job."""
    cancel_lock_timer(job_queue, session.id)
    if session.locked:
        return None
    return job_queue.run_once(
        callback,
        when=session.expires_at,
        data=session.id,
        name=lock_job_name(session.id),
        chat_id=session.chat_id,
    )


def cancel_lock_timer(job_queue, session_id):
    jobs = job_queue.get_jobs_by_name(lock_job_name(session_id))
    for job in jobs:
        job.schedule_removal()
    return len(jobs)
