"""Base error types shared across components."""


class InterviewPrepError(Exception):
    """Base error for the interview prep core."""

    def __init__(self, message: str, code: str = "interview_prep_error"):
        self.message = message
        self.code = code
        super().__init__(message)
