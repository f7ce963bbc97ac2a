from __future__ import annotations

import json

import pytest

from conftest import StubConsole
from game_mod_engine.core.config import Reward, TriviaConfig, load_trivia_config, save_trivia_config
from game_mod_engine.core.errors import ConfigError
from game_mod_engine.core.normalize import render_template
from game_mod_engine.core.rewards import ConsoleCommandRewardGrantor


def test_missing_config_is_written_with_defaults(tmp_path):
    path = tmp_path / "trivia_config.json"

    cfg = load_trivia_config(path)

    assert cfg.join_window_seconds == 60
    assert cfg.reward.credits == 50000
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["joinWindowSeconds"] == 60
    assert data["schedule"] == {"mode": "hourly", "minute": 0}
    assert data["reward"]["consoleCommandTemplate"] == "credits add {playerId} {amount}"
    assert "dryRunTag" in data["messages"]


def test_config_reads_camel_case_and_keeps_defaults(tmp_path):
    path = tmp_path / "trivia_config.json"
    path.write_text(
        json.dumps(
            {
                "questionCount": 3,
                "allowZeroScoreWinners": True,
                "schedule": {"mode": "hourly", "minute": 30},
                "reward": {"credits": 1000},
                "messages": {"announce": "Quiz in {join}s"},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_trivia_config(path)

    assert cfg.question_count == 3
    assert cfg.allow_zero_score_winners is True
    assert cfg.schedule.minute == 30
    assert cfg.reward.credits == 1000
    assert cfg.reward.console_command_template == "credits add {playerId} {amount}"
    assert cfg.messages.announce == "Quiz in {join}s"
    assert cfg.messages.claimed == "[TRIVIA] {player} claimed {credits} cr."


def test_invalid_config_falls_back_without_overwrite(tmp_path):
    path = tmp_path / "trivia_config.json"
    path.write_text(json.dumps({"questionCount": "five"}), encoding="utf-8")

    cfg = load_trivia_config(path)

    assert cfg.question_count == 5
    assert json.loads(path.read_text(encoding="utf-8")) == {"questionCount": "five"}


def test_from_dict_rejects_non_object():
    with pytest.raises(ConfigError):
        TriviaConfig.from_dict(["not", "a", "dict"])


def test_config_round_trips_through_file(tmp_path):
    path = tmp_path / "cfg.json"
    cfg = TriviaConfig(min_players=1)
    cfg.reward.credits = 7

    save_trivia_config(path, cfg)
    loaded = load_trivia_config(path)

    assert loaded.min_players == 1
    assert loaded.reward.credits == 7


def test_recency_capacity_covers_two_rounds():
    assert TriviaConfig(no_repeat_window=4, question_count=5).recency_capacity == 10
    assert TriviaConfig().recency_capacity == 40


def test_render_template_leaves_unknown_tokens():
    assert render_template("{a} and {b} {", a=1) == "1 and {b} {"


def test_grantor_runs_console_command():
    console = StubConsole()
    grantor = ConsoleCommandRewardGrantor(console)

    assert grantor.grant(42, Reward(credits=500)) is True
    assert console.commands == ["credits add 42 500"]


def test_grantor_zero_credits_is_a_success_without_command():
    console = StubConsole()
    assert ConsoleCommandRewardGrantor(console).grant(1, Reward(credits=0)) is True
    assert console.commands == []


def test_grantor_failures():
    class BrokenConsole:
        def execute(self, command):
            raise ConnectionError("host gone")

    assert ConsoleCommandRewardGrantor(StubConsole()).grant(1, Reward(console_command_template=" ")) is False
    assert ConsoleCommandRewardGrantor(BrokenConsole()).grant(1, Reward()) is False
