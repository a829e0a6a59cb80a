"""
Fuzzy question lookup over the rows of one uploaded script.

Scores every stored Question against the incoming text with RapidFuzz's
normalized Indel ratio (0-100) after case folding and punctuation stripping.
The configured threshold is a 0-1 distance, so a threshold of 0.4 accepts
rows scoring 60 or more. Equal scores keep the sheet's row order.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from rapidfuzz import fuzz, process, utils

QUESTION_FIELD = "Question"
ANSWER_FIELD = "Answer"
DEFAULT_THRESHOLD = 0.4


@dataclass(frozen=True)
class Match:
    row: dict[str, Any]
    score: float
    position: int


class QuestionIndex:
    """Immutable fuzzy index over a row sequence, keyed on the Question field."""

    def __init__(self, rows: list[Mapping[str, Any]], threshold: float = DEFAULT_THRESHOLD):
        self.rows: list[dict[str, Any]] = [dict(row) for row in rows]
        self.threshold = min(1.0, max(0.0, float(threshold)))
        self.score_cutoff = (1.0 - self.threshold) * 100.0
        # None entries are skipped by rapidfuzz, so rows without a question never match.
        self._questions: list[str | None] = [self._question_text(row) for row in self.rows]

    @staticmethod
    def _question_text(row: Mapping[str, Any]) -> str | None:
        value = row.get(QUESTION_FIELD)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def __len__(self) -> int:
        return len(self.rows)

    def search(self, text: str) -> list[Match]:
        """All rows clearing the threshold, best first."""
        query = str(text or "").strip()
        if not query or not utils.default_process(query):
            return []

        results = process.extract(
            query,
            self._questions,
            scorer=fuzz.ratio,
            processor=utils.default_process,
            score_cutoff=self.score_cutoff,
            limit=None,
        )
        ranked = sorted(results, key=lambda item: (-item[1], item[2]))
        return [Match(row=self.rows[idx], score=float(score), position=int(idx)) for _, score, idx in ranked]

    def query(self, text: str) -> dict[str, Any] | None:
        matches = self.search(text)
        return matches[0].row if matches else None

    def answer_for(self, text: str) -> str | None:
        row = self.query(text)
        if row is None:
            return None
        answer = row.get(ANSWER_FIELD)
        return None if answer is None else str(answer)
