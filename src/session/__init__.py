"""Learner session persistence and the per-learner tutor actor."""

from .learner_session import LearnerSession
from .session_store import SessionStore
from .tutor_session import (
    NoActiveItemError,
    Submission,
    SubmissionResult,
    TutorSession,
    build_grade_request,
)

__all__ = [
    "LearnerSession",
    "SessionStore",
    "NoActiveItemError",
    "Submission",
    "SubmissionResult",
    "TutorSession",
    "build_grade_request",
]
