from __future__ import annotations

import json
import random

from conftest import InOrderRandom, make_question
from game_mod_engine.core.questions import SEED_QUESTIONS, QuestionBank, load_question_bank
from game_mod_engine.core.recency import RecentlyUsedIds
from game_mod_engine.core.types import Question


def test_recently_used_ids_evicts_oldest():
    recent: RecentlyUsedIds[str] = RecentlyUsedIds(2)
    recent.push_many(["a", "b", "c"])

    assert "a" not in recent
    assert list(recent) == ["c", "b"]


def test_recently_used_ids_repush_does_not_refresh():
    recent: RecentlyUsedIds[str] = RecentlyUsedIds(2)
    recent.push_many(["a", "b", "a", "c"])

    assert list(recent) == ["c", "b"]


def test_bank_drops_invalid_and_duplicate_questions():
    bank = QuestionBank(
        [
            make_question("ok"),
            make_question("ok"),
            Question(id="few", text="?", choices=["a", "b"], answer=0),
            Question(id="range", text="?", choices=["a", "b", "c", "d"], answer=4),
            Question(id="", text="?", choices=["a", "b", "c", "d"], answer=0),
        ]
    )

    assert [q.id for q in bank.questions] == ["ok"]


def test_pick_avoids_recent_ids():
    bank = QuestionBank([make_question(f"q{i}") for i in range(4)])
    recent: RecentlyUsedIds[str] = RecentlyUsedIds(10)
    recent.push_many(["q0", "q1"])

    picked = bank.pick(2, recent, InOrderRandom())

    assert [rq.source.id for rq in picked] == ["q2", "q3"]
    assert {"q2", "q3"} <= set(recent)


def test_pick_falls_back_to_whole_bank_when_short():
    bank = QuestionBank([make_question(f"q{i}") for i in range(3)])
    recent: RecentlyUsedIds[str] = RecentlyUsedIds(10)
    recent.push_many(["q0", "q1"])

    picked = bank.pick(2, recent, InOrderRandom())

    assert [rq.source.id for rq in picked] == ["q0", "q1"]


def test_pick_keeps_correct_answer_after_shuffle():
    bank = QuestionBank([make_question(f"q{i}", answer=i % 4) for i in range(8)])
    recent: RecentlyUsedIds[str] = RecentlyUsedIds(4)

    for rq in bank.pick(8, recent, random.Random(1234)):
        idx = "ABCD".index(rq.correct_letter)
        assert rq.choices[idx] == rq.source.correct_text
        assert sorted(rq.choices) == sorted(rq.source.choices)


def test_pick_from_empty_bank_returns_nothing():
    assert QuestionBank().pick(3, RecentlyUsedIds(5), InOrderRandom()) == []


def test_load_question_bank_seeds_missing_file(tmp_path):
    path = tmp_path / "questions.json"

    bank = load_question_bank(path)

    assert len(bank) == len(SEED_QUESTIONS)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"] == 1
    assert data["questions"][0]["id"] == "g-001"


def test_load_question_bank_reads_original_keys(tmp_path):
    path = tmp_path / "questions.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "questions": [
                    {"id": "x-1", "cat": "space", "q": "Nearest star?", "choices": ["Sun", "Vega", "Sirius", "Rigel"], "answer": 0},
                    "not a question",
                ],
            }
        ),
        encoding="utf-8",
    )

    bank = load_question_bank(path)

    assert len(bank) == 1
    question = bank.questions[0]
    assert question.category == "space"
    assert question.text == "Nearest star?"
    assert question.correct_text == "Sun"


def test_load_question_bank_corrupt_file_is_empty(tmp_path):
    path = tmp_path / "questions.json"
    path.write_text("{not json", encoding="utf-8")

    assert len(load_question_bank(path)) == 0
    assert path.read_text(encoding="utf-8") == "{not json"
