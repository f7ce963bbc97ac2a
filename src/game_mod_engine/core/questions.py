from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from .ports import RandomPort
from .recency import RecentlyUsedIds
from .types import LETTERS, Question, RoundQuestion

logger = logging.getLogger(__name__)

SEED_QUESTIONS: list[dict[str, Any]] = [
    {
        "id": "g-001",
        "cat": "gaming",
        "q": "Which company developed the original Half-Life (1998)?",
        "choices": ["Valve", "id Software", "Epic Games", "3D Realms"],
        "answer": 0,
        "difficulty": 1,
    },
    {
        "id": "g-002",
        "cat": "gaming",
        "q": "In Minecraft, which ore requires an iron pickaxe or better to mine?",
        "choices": ["Diamond Ore", "Coal Ore", "Copper Ore", "Redstone Ore"],
        "answer": 0,
        "difficulty": 1,
    },
    {
        "id": "g-003",
        "cat": "gaming",
        "q": "The Konami Code starts with:",
        "choices": ["Up, Up, Down, Down", "Left, Left, Right, Right", "A, B, A, B", "Down, Down, Up, Up"],
        "answer": 0,
        "difficulty": 1,
    },
    {
        "id": "g-004",
        "cat": "gaming",
        "q": "Which game popularized the phrase 'The Cake is a Lie'?",
        "choices": ["Portal", "BioShock", "Mass Effect", "GLaDOS Quest"],
        "answer": 0,
        "difficulty": 1,
    },
    {
        "id": "g-005",
        "cat": "gaming",
        "q": "In The Witcher 3, what is Geralt's last name?",
        "choices": ["of Rivia", "of Kaer Morhen", "the White", "Wolf"],
        "answer": 0,
        "difficulty": 1,
    },
]


def _invalid_reason(question: Question) -> str | None:
    if not question.id:
        return "missing id"
    if len(question.choices) != len(LETTERS):
        return f"expected {len(LETTERS)} choices, got {len(question.choices)}"
    if not 0 <= question.answer < len(question.choices):
        return f"answer index {question.answer} out of range"
    return None


class QuestionBank:
    def __init__(self, questions: Iterable[Question] = ()):
        self._questions: list[Question] = []
        seen: set[str] = set()
        for question in questions:
            reason = _invalid_reason(question)
            if reason is None and question.id in seen:
                reason = "duplicate id"
            if reason is not None:
                logger.warning("Skipping question %r: %s", question.id, reason)
                continue
            seen.add(question.id)
            self._questions.append(question)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuestionBank":
        raw = data.get("questions") if isinstance(data, dict) else None
        questions = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            try:
                questions.append(Question.from_dict(entry))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed question entry: %s", exc)
        return cls(questions)

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    def pick(self, count: int, recent: RecentlyUsedIds[str], rng: RandomPort) -> list[RoundQuestion]:
        """Select ``count`` questions, avoiding recently used ids when possible.

        Falls back to the whole bank when too few fresh questions remain, so a
        small bank repeats questions instead of failing the round. Selected ids
        are pushed into ``recent``.
        """
        if not self._questions or count <= 0:
            return []
        candidates = [q for q in self._questions if q.id not in recent]
        if len(candidates) < count:
            candidates = list(self._questions)
        rng.shuffle(candidates)

        picked = [self._shuffle_choices(q, rng) for q in candidates[:count]]
        recent.push_many(rq.source.id for rq in picked)
        return picked

    @staticmethod
    def _shuffle_choices(question: Question, rng: RandomPort) -> RoundQuestion:
        order = list(range(len(LETTERS)))
        rng.shuffle(order)
        choices = tuple(question.choices[src] for src in order)
        correct_letter = LETTERS[order.index(question.answer)]
        return RoundQuestion(source=question, choices=choices, correct_letter=correct_letter)


def load_question_bank(path: str | Path) -> QuestionBank:
    path = Path(path)
    if not path.exists():
        seed = {"version": 1, "questions": SEED_QUESTIONS}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(seed, indent=2), encoding="utf-8")
            logger.info("Seeded %s with %d questions", path, len(SEED_QUESTIONS))
        except OSError as exc:
            logger.warning("Could not seed question file %s: %s", path, exc)
        return QuestionBank.from_dict(seed)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read question file %s (%s); using an empty bank", path, exc)
        return QuestionBank()
    bank = QuestionBank.from_dict(data)
    logger.info("Loaded %d questions from %s", len(bank), path)
    return bank
