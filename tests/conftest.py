from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from game_mod_engine.core.config import TriviaConfig
from game_mod_engine.core.questions import QuestionBank
from game_mod_engine.core.scheduler import SessionScheduler
from game_mod_engine.core.types import Phase, Question
from game_mod_engine.persistence.sqlalchemy.db import build_engine, build_session_factory, create_schema
from game_mod_engine.persistence.sqlalchemy.uow import SQLAlchemyUnitOfWork


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class StubMessenger:
    def __init__(self):
        self.broadcasts: list[str] = []
        self.private: list[tuple[int, str]] = []

    def broadcast(self, text: str) -> None:
        self.broadcasts.append(text)

    def send_private(self, player_id: int, text: str) -> None:
        self.private.append((player_id, text))

    def private_for(self, player_id: int) -> list[str]:
        return [text for pid, text in self.private if pid == player_id]


class StubGrantor:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.calls: list[tuple[int, int]] = []

    def grant(self, player_id: int, reward) -> bool:
        self.calls.append((player_id, reward.credits))
        return self.succeed


class StubConsole:
    def __init__(self):
        self.commands: list[str] = []

    def execute(self, command: str) -> None:
        self.commands.append(command)


class InOrderRandom:
    """Leaves sequences in their original order so tests can predict letters."""

    def shuffle(self, x) -> None:
        return None

    def randrange(self, stop: int) -> int:
        return 0


def make_question(qid: str, answer: int = 1) -> Question:
    return Question(
        id=qid,
        text=f"Question {qid}?",
        choices=[f"{qid}-a", f"{qid}-b", f"{qid}-c", f"{qid}-d"],
        answer=answer,
    )


def run_until(scheduler: SessionScheduler, clock: FakeClock, phase: Phase, limit: int = 600) -> None:
    """Tick once per simulated second until ``phase`` is reached."""
    for _ in range(limit):
        if scheduler.phase is phase:
            return
        clock.advance(1)
        scheduler.on_tick()
    raise AssertionError(f"never reached {phase.value}; stuck in {scheduler.phase.value}")


@pytest.fixture()
def clock():
    # half a minute past the hour so the hourly auto-start never fires by accident
    return FakeClock(datetime(2026, 3, 1, 12, 0, 30, tzinfo=timezone.utc))


@pytest.fixture()
def messenger():
    return StubMessenger()


@pytest.fixture()
def grantor():
    return StubGrantor()


@pytest.fixture()
def trivia_config():
    return TriviaConfig(
        join_window_seconds=10,
        question_count=1,
        question_time_seconds=20,
        tick_every_seconds=5,
    )


@pytest.fixture()
def bank():
    return QuestionBank([make_question("q-1"), make_question("q-2"), make_question("q-3")])


@pytest.fixture()
def make_scheduler(trivia_config, bank, messenger, grantor, clock):
    def _factory(**overrides) -> SessionScheduler:
        kwargs = dict(
            config=trivia_config,
            bank=bank,
            messenger=messenger,
            grantor=grantor,
            clock=clock,
            rng=InOrderRandom(),
        )
        kwargs.update(overrides)
        return SessionScheduler(**kwargs)

    return _factory


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    return build_session_factory(engine)


@pytest.fixture()
def uow_factory(session_factory):
    def _factory():
        return SQLAlchemyUnitOfWork(session_factory)

    return _factory
