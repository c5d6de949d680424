"""Submission module: one mutable file set per participant per room."""

from .schemas import Submission
from .store import SubmissionStore

__all__ = ["Submission", "SubmissionStore"]
