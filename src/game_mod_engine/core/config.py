from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .errors import ConfigError

logger = logging.getLogger(__name__)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class Schedule:
    mode: str = "hourly"
    minute: int = 0


@dataclass
class Reward:
    credits: int = 50000
    console_command_template: str = "credits add {playerId} {amount}"


@dataclass
class Messages:
    announce: str = "[TRIVIA] New challenge in {join}s! Type /trivia join to participate."
    join_confirm: str = "[TRIVIA] You're in. Get ready."
    join_tick: str = "[TRIVIA] Starting in {secs}s... ({count} joined)"
    q: str = "[TRIVIA Q{n}] {question}"
    opts: str = "A) {A}  B) {B}  C) {C}  D) {D} -- answer with /a <letter>"
    tick: str = "[TRIVIA] {secs}s left..."
    reveal: str = "[TRIVIA] Time! Correct: {letter}) {text}"
    round_win: str = "[TRIVIA] Winners with {score}/{total}: {winners}"
    round_no_win: str = "[TRIVIA] No winners this time."
    claimable: str = "[TRIVIA] Winners: use /claim to receive {credits} credits."
    claimed: str = "[TRIVIA] {player} claimed {credits} cr."
    already_claimed: str = "[TRIVIA] You already claimed this round."
    not_winner: str = "[TRIVIA] You're not on the winners list this round."
    dry_run_tag: str = " [DRY-RUN: no payouts]"
    dry_run_claim_notice: str = "[TRIVIA] Dry-run complete. No payouts in test mode."
    dry_run_claim_denied: str = "[TRIVIA] Dry-run: payouts are disabled."
    dry_run_joined: str = "[TRIVIA] Dry-run: you are auto-joined."
    no_join_window: str = "[TRIVIA] No active join window."
    no_question: str = "[TRIVIA] No active question."
    not_joined: str = "[TRIVIA] You are not joined. Use /trivia join during the window."
    already_answered: str = "[TRIVIA] You already answered this question."
    bad_letter: str = "[TRIVIA] Use /a <A|B|C|D>."
    nothing_to_claim: str = "[TRIVIA] Nothing to claim right now."
    no_winners_to_claim: str = "[TRIVIA] Last round had no winners. Nothing to claim."
    grant_failed: str = "[TRIVIA] Failed to grant credits. Contact admin."
    not_enough_players: str = "[TRIVIA] Not enough players (need {need}, got {got}). Round canceled."
    no_questions: str = "[TRIVIA] No questions available - contact admin."
    aborted: str = "[TRIVIA] Round aborted by admin."


@dataclass
class TriviaConfig:
    schedule: Schedule = field(default_factory=Schedule)
    join_window_seconds: int = 60
    question_count: int = 5
    question_time_seconds: int = 30
    tick_every_seconds: int = 5
    no_repeat_window: int = 40
    allow_zero_score_winners: bool = False
    min_players: int = 3
    reveal_seconds: int = 2
    finish_seconds: int = 1
    claim_window_minutes: int = 55
    answer_cooldown_seconds: int = 2
    reward: Reward = field(default_factory=Reward)
    messages: Messages = field(default_factory=Messages)

    @property
    def recency_capacity(self) -> int:
        return max(self.no_repeat_window, self.question_count * 2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TriviaConfig":
        if not isinstance(data, dict):
            raise ConfigError("trivia config must be a JSON object")
        cfg = cls()
        for f in fields(cls):
            if f.name in ("schedule", "reward", "messages"):
                continue
            raw = data.get(_camel(f.name), data.get(f.name))
            if raw is None:
                continue
            default = getattr(cfg, f.name)
            try:
                setattr(cfg, f.name, bool(raw) if isinstance(default, bool) else int(raw))
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"{_camel(f.name)}: {exc}") from exc
        cfg.schedule = _load_section(Schedule, data.get("schedule"))
        cfg.reward = _load_section(Reward, data.get("reward"))
        cfg.messages = _load_section(Messages, data.get("messages"))
        return cfg

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in ("schedule", "reward", "messages"):
                value = {_camel(sf.name): getattr(value, sf.name) for sf in fields(value)}
            out[_camel(f.name)] = value
        return out


def _load_section(section_cls, raw: Any):
    section = section_cls()
    if not isinstance(raw, dict):
        return section
    for f in fields(section_cls):
        value = raw.get(_camel(f.name), raw.get(f.name))
        if value is None:
            continue
        default = getattr(section, f.name)
        try:
            setattr(section, f.name, type(default)(value))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{_camel(f.name)}: {exc}") from exc
    return section


def load_trivia_config(path: str | Path) -> TriviaConfig:
    """Read the trivia config, writing the defaults on first run.

    A missing file is created with defaults. An unreadable or invalid file falls
    back to defaults without being overwritten, so an operator typo is not lost.
    """
    path = Path(path)
    if not path.exists():
        cfg = TriviaConfig()
        try:
            save_trivia_config(path, cfg)
            logger.info("Created default trivia config at %s", path)
        except OSError as exc:
            logger.warning("Could not write default trivia config %s: %s", path, exc)
        return cfg
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        cfg = TriviaConfig.from_dict(data)
    except (OSError, ValueError, ConfigError) as exc:
        logger.warning("Invalid trivia config %s (%s); using defaults", path, exc)
        return TriviaConfig()
    logger.info("Loaded trivia config from %s", path)
    return cfg


def save_trivia_config(path: str | Path, cfg: TriviaConfig) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg.to_dict(), indent=2), encoding="utf-8")


@dataclass(frozen=True)
class RecordStoreConfig:
    slot_count: int = 40
    backup_generations: int = 3
    admin_backup_generations: int = 3
    doomsday_retention_seconds: int = 86_400
    file_suffix: str = ".json"
