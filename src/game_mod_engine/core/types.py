from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

LETTERS = ("A", "B", "C", "D")

_OWNER_RE = re.compile(r"[\w.-]+")


class Phase(str, Enum):
    IDLE = "idle"
    JOINING = "joining"
    ASKING = "asking"
    REVEAL = "reveal"
    FINISHED = "finished"
    CLAIMABLE = "claimable"


@dataclass
class Question:
    id: str
    text: str
    choices: list[str]
    answer: int
    category: str = "gaming"
    difficulty: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Question":
        return cls(
            id=str(data.get("id") or "").strip(),
            text=str(data.get("q") or data.get("text") or ""),
            choices=[str(c) for c in (data.get("choices") or [])],
            answer=int(data.get("answer", -1)),
            category=str(data.get("cat") or data.get("category") or "gaming"),
            difficulty=int(data.get("difficulty", 1)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "cat": self.category,
            "q": self.text,
            "choices": list(self.choices),
            "answer": self.answer,
            "difficulty": self.difficulty,
        }

    @property
    def correct_text(self) -> str:
        return self.choices[self.answer]


@dataclass(frozen=True)
class RoundQuestion:
    source: Question
    choices: tuple[str, str, str, str]
    correct_letter: str


@dataclass
class Round:
    phase: Phase = Phase.IDLE
    phase_deadline: Optional[datetime] = None
    next_tick_time: Optional[datetime] = None
    is_dry_run: bool = False
    starter_id: Optional[int] = None
    joined_players: set[int] = field(default_factory=set)
    score_per_player: dict[int, int] = field(default_factory=dict)
    question_index: int = -1
    selected_questions: list[RoundQuestion] = field(default_factory=list)
    answered_this_question: set[int] = field(default_factory=set)
    answer_cooldowns: dict[int, datetime] = field(default_factory=dict)

    @property
    def current_question(self) -> RoundQuestion:
        assert 0 <= self.question_index < len(self.selected_questions)
        return self.selected_questions[self.question_index]


@dataclass
class PersistedRoundResult:
    round_id: str
    winners: list[int] = field(default_factory=list)
    claimed: list[int] = field(default_factory=list)
    dry_run: bool = False
    top_score: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedRoundResult":
        winners = [int(p) for p in (data.get("winners") or [])]
        claimed = [int(p) for p in (data.get("claimed") or []) if int(p) in winners]
        return cls(
            round_id=str(data.get("roundId") or data.get("round_id") or ""),
            winners=winners,
            claimed=claimed,
            dry_run=bool(data.get("dryRun", data.get("dry_run", False))),
            top_score=int(data.get("topScore", data.get("top_score", 0)) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "roundId": self.round_id,
            "winners": list(self.winners),
            "claimed": list(self.claimed),
            "dryRun": self.dry_run,
            "topScore": self.top_score,
        }


@dataclass
class CommandResult:
    status: str
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class ItemStack:
    id: int = 0
    count: int = 0
    ammo: int = 0
    decay: int = 0
    slot_idx: int = 0

    @property
    def occupied(self) -> bool:
        return self.id > 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ItemStack":
        if not data:
            return cls()
        return cls(
            id=int(data.get("id", 0) or 0),
            count=int(data.get("count", 0) or 0),
            ammo=int(data.get("ammo", 0) or 0),
            decay=int(data.get("decay", 0) or 0),
            slot_idx=int(data.get("slotIdx", data.get("slot_idx", 0)) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "count": self.count,
            "ammo": self.ammo,
            "decay": self.decay,
            "slotIdx": self.slot_idx,
        }


@dataclass
class Record:
    items: list[ItemStack]
    saved_at: Optional[datetime] = None

    @classmethod
    def empty(cls, size: int) -> "Record":
        return cls(items=[ItemStack(slot_idx=i) for i in range(size)])

    @property
    def occupied_count(self) -> int:
        return sum(1 for item in self.items if item.occupied)


@dataclass(frozen=True)
class RecordKey:
    owner: str
    slot: int

    def __post_init__(self) -> None:
        if not _OWNER_RE.fullmatch(self.owner) or set(self.owner) == {"."}:
            raise ValueError(f"record owner must be a plain file name, got {self.owner!r}")

    @classmethod
    def parse(cls, raw: "RecordKey | str") -> "RecordKey":
        if isinstance(raw, RecordKey):
            return raw
        owner, sep, slot = str(raw).rpartition(":")
        if not sep or not owner.strip():
            raise ValueError(f"record key must look like '<owner>:<slot>', got {raw!r}")
        return cls(owner=owner.strip(), slot=int(slot))

    def __str__(self) -> str:
        return f"{self.owner}:{self.slot}"


@dataclass
class SaveResult:
    status: str
    reason: Optional[str] = None
    saved_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"
