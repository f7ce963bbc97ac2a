from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..core.types import PersistedRoundResult


class RoundResultRepo(Protocol):
    def load(self) -> PersistedRoundResult | None: ...
    def save(self, result: PersistedRoundResult) -> None: ...


class RoundResultRowRepo(Protocol):
    def get(self, round_id: str): ...
    def latest(self): ...
    def upsert(
        self,
        round_id: str,
        winners_json: str,
        claimed_json: str,
        dry_run: bool,
        top_score: int,
        now: datetime,
    ): ...


class ClaimLogRepo(Protocol):
    def add(self, round_id: str, player_id: int, claimed_at: datetime): ...
    def list_for_round(self, round_id: str): ...


class UnitOfWork(Protocol):
    round_results: RoundResultRowRepo
    claims: ClaimLogRepo

    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
