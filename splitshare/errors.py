"""
Errors raised by SplitShare. Handlers show ``str(error)`` to the user.
"""


class SplitShareError(Exception):
    """Base class for errors reported back to the chat."""


class ValidationError(SplitShareError):
    """Bad user input. The operation is aborted without changing state."""


class SessionNotFoundError(SplitShareError):
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found.")


class SessionLockedError(SplitShareError):
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session {session_id} is locked. View the summary with /summary {session_id}")


class ReceiptParseError(SplitShareError):
    """The receipt service failed or returned something that isn't a bill."""
