from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

from game_mod_engine.core.config import TriviaConfig
from game_mod_engine.core.questions import SEED_QUESTIONS, QuestionBank
from game_mod_engine.core.rewards import ConsoleCommandRewardGrantor
from game_mod_engine.core.scheduler import SessionScheduler
from game_mod_engine.core.types import Phase, Question
from game_mod_engine.persistence.round_results import SQLAlchemyRoundResultRepo
from game_mod_engine.persistence.sqlalchemy import build_uow_factory


class PrintMessenger:
    def broadcast(self, text: str) -> None:
        print("[all]", text)

    def send_private(self, player_id: int, text: str) -> None:
        print(f"[to {player_id}]", text)


class PrintConsole:
    def execute(self, command: str) -> None:
        print("[console]", command)


class SimulatedClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 20, 0, 5, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def main() -> None:
    clock = SimulatedClock()
    config = TriviaConfig(join_window_seconds=10, question_count=3, question_time_seconds=15)
    bank = QuestionBank(Question.from_dict(q) for q in SEED_QUESTIONS)
    scheduler = SessionScheduler(
        config=config,
        bank=bank,
        messenger=PrintMessenger(),
        grantor=ConsoleCommandRewardGrantor(PrintConsole()),
        result_repo=SQLAlchemyRoundResultRepo(build_uow_factory("sqlite+pysqlite:///:memory:")),
        clock=clock,
        rng=random.Random(7),
    )

    scheduler.force_start()
    for player_id in (101, 102, 103):
        scheduler.on_join_command(player_id)

    answered = -1
    while scheduler.phase is not Phase.CLAIMABLE:
        clock.now += timedelta(seconds=1)
        scheduler.on_tick()
        r = scheduler.round
        if r.phase is Phase.ASKING and r.question_index != answered:
            answered = r.question_index
            correct = r.current_question.correct_letter
            scheduler.on_answer_command(101, correct)
            scheduler.on_answer_command(102, "A" if correct != "A" else "B")

    print("winners:", scheduler.result.winners)
    for player_id in (101, 102):
        print(player_id, "claim ->", scheduler.on_claim_command(player_id).status)


if __name__ == "__main__":
    main()
