"""
Tests and test results, as far as booking and certification need them.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from domain.payment.entity import _ensure_utc
from domain.subject.entity import SubjectRef

CERTIFICATE_PASS_PERCENTAGE = 60.0

# (minimum percentage, rating), highest band first
SCORE_RATINGS = (
    (80.0, "Best Performer"),
    (70.0, "Good Performer"),
    (60.0, "Average Performer"),
)


def is_certificate_eligible(percentage: float, threshold: float = CERTIFICATE_PASS_PERCENTAGE) -> bool:
    return percentage >= threshold


def score_rating(percentage: float) -> str:
    for minimum, rating in SCORE_RATINGS:
        if percentage >= minimum:
            return rating
    return "Below Average"


@dataclass
class Test:
    __test__ = False

    id: int
    title: str
    price: Decimal
    max_attempts: int = 1
    is_active: bool = True


@dataclass
class TestResult:
    __test__ = False

    id: int
    test_id: int
    subject: SubjectRef
    total_questions: int
    correct_answers: int
    attempt_number: int = 1
    submitted_at: Optional[datetime] = None

    def __post_init__(self):
        self.submitted_at = _ensure_utc(self.submitted_at)

    @property
    def score_percentage(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.correct_answers * 100 / self.total_questions

    @property
    def rating(self) -> str:
        return score_rating(self.score_percentage)

    def is_certificate_eligible(self, threshold: float = CERTIFICATE_PASS_PERCENTAGE) -> bool:
        if self.total_questions <= 0:
            return False
        return is_certificate_eligible(self.score_percentage, threshold)
