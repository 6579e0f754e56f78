from __future__ import annotations


class InsightsError(Exception):
    """Base error for the insight engine."""


class SessionNotFound(InsightsError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id} not found")
        self.session_id = session_id


class InvalidSessionState(InsightsError):
    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"session {session_id} is not usable: {reason}")
        self.session_id = session_id
        self.reason = reason


class SessionAccessDenied(InsightsError):
    def __init__(self, session_id: str, user_id: str) -> None:
        super().__init__(f"session {session_id} does not belong to user {user_id}")
        self.session_id = session_id
        self.user_id = user_id


class CatalogError(InsightsError):
    pass


class MessageNotFound(InsightsError):
    def __init__(self, session_id: str, turn_index: int) -> None:
        super().__init__(f"session {session_id} has no user message at turn {turn_index}")
        self.session_id = session_id
        self.turn_index = turn_index
