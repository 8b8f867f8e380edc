"""Exception hierarchy shared by the survey stores and lifecycle."""

from __future__ import annotations


class SurveyError(RuntimeError):
    """Base class for survey domain failures."""


class SurveyNotFoundError(SurveyError, LookupError):
    """Raised when a survey id does not resolve to a stored survey."""

    def __init__(self, survey_id: int) -> None:
        super().__init__(f"Survey not found: {survey_id}")
        self.survey_id = survey_id


class ResponseConflictError(SurveyError):
    """Raised when a second response is inserted for the same user."""

    def __init__(self, survey_id: int, user_id: int) -> None:
        super().__init__(
            f"User {user_id} already responded to survey {survey_id}"
        )
        self.survey_id = survey_id
        self.user_id = user_id


class ResponseNotFoundError(SurveyError, LookupError):
    """Raised when replacing a response that was never recorded."""

    def __init__(self, survey_id: int, user_id: int) -> None:
        super().__init__(
            f"No response from user {user_id} for survey {survey_id}"
        )
        self.survey_id = survey_id
        self.user_id = user_id


class InvalidSurveyInputError(SurveyError, ValueError):
    """Raised when survey creation parameters fail validation."""


class TerminalStateError(SurveyError):
    """Raised when a finished survey is asked to change state again."""

    def __init__(self, survey_id: int, status: str) -> None:
        super().__init__(f"Survey {survey_id} is already {status.lower()}")
        self.survey_id = survey_id
        self.status = status
