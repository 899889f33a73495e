"""
Paper Content Sources

Real question-bank sourcing lives outside ExamChain. A ContentSource turns
(vacancy_id, set_id) into the full text of one paper variant.
"""

import random
from typing import Protocol

from ..core import PAPER_DURATION_HOURS, QUESTIONS_PER_PAPER, fingerprint


class ContentSource(Protocol):
    def compose(self, vacancy_id: str, set_id: str) -> str:
        ...


class PlaceholderContentSource:
    """
    Deterministic stand-in for a question bank.

    Each set gets the same numbered questions in a set-specific order, seeded
    from the fingerprint of (vacancy_id, set_id).
    """

    def __init__(self, total_questions: int = QUESTIONS_PER_PAPER, duration_hours: int = PAPER_DURATION_HOURS):
        self.total_questions = total_questions
        self.duration_hours = duration_hours

    def question_order(self, vacancy_id: str, set_id: str) -> list:
        seed = int(fingerprint(f"{vacancy_id}:{set_id}")[:16], 16)
        order = list(range(1, self.total_questions + 1))
        random.Random(seed).shuffle(order)
        return order

    def compose(self, vacancy_id: str, set_id: str) -> str:
        lines = [
            f"VACANCY ID: {vacancy_id}",
            f"PAPER SET: {set_id}",
            f"TOTAL QUESTIONS: {self.total_questions}",
            f"DURATION: {self.duration_hours} hours",
        ]
        for position, question in enumerate(self.question_order(vacancy_id, set_id), start=1):
            lines.append(f"Q{position}: Question {question} for set {set_id}")
        return "\n".join(lines) + "\n"
