from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from game_mod_engine.core.types import PersistedRoundResult
from game_mod_engine.persistence.round_results import JsonRoundResultRepo, SQLAlchemyRoundResultRepo
from game_mod_engine.persistence.sqlalchemy.models import ClaimLog, RoundResultRow


def test_json_repo_round_trip(tmp_path):
    path = tmp_path / "trivia_state.json"
    repo = JsonRoundResultRepo(str(path))
    assert repo.load() is None

    repo.save(PersistedRoundResult(round_id="2026-03-01T12:05:00Z", winners=[4, 8], claimed=[8], top_score=3))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {
        "roundId": "2026-03-01T12:05:00Z",
        "winners": [4, 8],
        "claimed": [8],
        "dryRun": False,
        "topScore": 3,
    }
    loaded = repo.load()
    assert loaded.winners == [4, 8]
    assert loaded.claimed == [8]


def test_json_repo_ignores_bad_documents(tmp_path):
    path = tmp_path / "trivia_state.json"
    repo = JsonRoundResultRepo(str(path))

    path.write_text("{broken", encoding="utf-8")
    assert repo.load() is None

    path.write_text(json.dumps({"roundId": "", "winners": [1]}), encoding="utf-8")
    assert repo.load() is None


def test_claimed_is_limited_to_winners():
    result = PersistedRoundResult.from_dict({"roundId": "r", "winners": [1, 2], "claimed": [2, 3]})
    assert result.claimed == [2]


def test_sqlalchemy_repo_returns_latest_round(uow_factory):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    times = iter([now, now + timedelta(hours=1)])
    repo = SQLAlchemyRoundResultRepo(uow_factory, clock=lambda: next(times))
    assert repo.load() is None

    repo.save(PersistedRoundResult(round_id="2026-03-01T12:00:00Z", winners=[1]))
    repo.save(PersistedRoundResult(round_id="2026-03-01T13:00:00Z", winners=[2, 3], top_score=2))

    latest = repo.load()
    assert latest.round_id == "2026-03-01T13:00:00Z"
    assert latest.winners == [2, 3]
    assert latest.top_score == 2
    assert repo.get("2026-03-01T12:00:00Z").winners == [1]
    assert repo.get("missing") is None


def test_sqlalchemy_repo_logs_each_claim_once(uow_factory, session_factory):
    repo = SQLAlchemyRoundResultRepo(uow_factory)
    result = PersistedRoundResult(round_id="2026-03-01T12:00:00Z", winners=[1, 2])
    repo.save(result)

    result.claimed.append(1)
    repo.save(result)
    result.claimed.append(2)
    repo.save(result)
    repo.save(result)

    with session_factory() as session:
        rows = session.execute(select(ClaimLog).order_by(ClaimLog.player_id)).scalars().all()
        stored = session.get(RoundResultRow, "2026-03-01T12:00:00Z")
        assert [row.player_id for row in rows] == [1, 2]
        assert json.loads(stored.claimed_json) == [1, 2]

    with uow_factory() as uow:
        assert len(uow.claims.list_for_round("2026-03-01T12:00:00Z")) == 2
