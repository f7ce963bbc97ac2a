from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Callable

from ..core.config import load_trivia_config, save_trivia_config
from ..core.names import DisplayNameCache
from ..core.ports import Clock, ConsoleCommandPort, MessengerPort, NameResolverPort, RandomPort
from ..core.questions import load_question_bank
from ..core.rewards import ConsoleCommandRewardGrantor
from ..core.scheduler import SessionScheduler
from ..core.ticker import TickDriver
from ..core.types import CommandResult
from ..persistence.interfaces import RoundResultRepo
from ..persistence.round_results import JsonRoundResultRepo

CONFIG_FILE = "trivia_config.json"
QUESTIONS_FILE = "questions.json"
STATE_FILE = "trivia_state.json"
LOG_FILE = "trivia.log"


class TriviaMod:
    """Hourly trivia challenge wired to a host's chat and console."""

    def __init__(
        self,
        mod_dir: str | Path,
        messenger: MessengerPort,
        console: ConsoleCommandPort,
        *,
        name_resolver: NameResolverPort | None = None,
        result_repo: RoundResultRepo | None = None,
        is_admin: Callable[[int], bool] | None = None,
        clock: Clock | None = None,
        rng: RandomPort | None = None,
        tick_interval: float = 1.0,
        log_to_file: bool = True,
    ):
        self._mod_dir = Path(mod_dir)
        self._mod_dir.mkdir(parents=True, exist_ok=True)
        self._messenger = messenger
        self._is_admin = is_admin or (lambda _player_id: True)
        self._logger = logging.getLogger(__name__)
        self._file_handler: logging.Handler | None = None
        if log_to_file:
            self._attach_file_log()

        self._logger.info("TriviaMod starting in %s", self._mod_dir)
        config = load_trivia_config(self.config_path)
        bank = load_question_bank(self.questions_path)
        self.scheduler = SessionScheduler(
            config=config,
            bank=bank,
            messenger=messenger,
            grantor=ConsoleCommandRewardGrantor(console),
            result_repo=result_repo or JsonRoundResultRepo(str(self._mod_dir / STATE_FILE)),
            clock=clock,
            rng=rng or random.Random(),
            names=DisplayNameCache(name_resolver),
        )
        self.ticker = TickDriver(self.scheduler, interval=tick_interval)

    @property
    def config_path(self) -> Path:
        return self._mod_dir / CONFIG_FILE

    @property
    def questions_path(self) -> Path:
        return self._mod_dir / QUESTIONS_FILE

    async def start(self) -> None:
        self.ticker.start()
        self._logger.info("TriviaMod ready (%s)", self.scheduler.phase.value)

    async def shutdown(self) -> None:
        await self.ticker.stop()
        self._logger.info("TriviaMod stopped")
        if self._file_handler is not None:
            logging.getLogger("game_mod_engine").removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def handle_chat(self, player_id: int, text: str) -> CommandResult | None:
        """Route one chat line. Returns ``None`` when the line is not a trivia command."""
        msg = (text or "").strip()
        if not msg:
            return None
        lower = msg.lower()

        if lower.startswith("/trivia join"):
            return self.scheduler.on_join_command(player_id)
        if lower == "/a" or lower.startswith("/a "):
            parts = msg.split()
            return self.scheduler.on_answer_command(player_id, parts[1] if len(parts) >= 2 else "")
        if lower == "/claim":
            return self.scheduler.on_claim_command(player_id)
        if lower == "/trivia status":
            line = self.scheduler.status_line()
            self._messenger.send_private(player_id, line)
            return CommandResult(status="ok", message=line)

        if not lower.startswith("/trivia "):
            return None
        if not self._is_admin(player_id):
            self._logger.warning("Player %s attempted %r without permission", player_id, msg)
            return self._reply(player_id, "forbidden", "[TRIVIA] That command is for admins.")

        if lower == "/trivia start":
            started = self.scheduler.force_start()
            return CommandResult(status="ok" if started else "busy")
        if lower == "/trivia dryrun":
            started = self.scheduler.force_dry_run(player_id)
            return CommandResult(status="ok" if started else "busy")
        if lower == "/trivia stop":
            self.scheduler.force_stop()
            return CommandResult(status="ok")
        if lower == "/trivia reload":
            self.scheduler.reload(
                config=load_trivia_config(self.config_path),
                bank=load_question_bank(self.questions_path),
            )
            return self._reply(player_id, "ok", "[TRIVIA] Config & questions reloaded.")
        if lower.startswith("/trivia reward"):
            return self._set_reward(player_id, msg.split())
        return None

    def _set_reward(self, player_id: int, parts: list[str]) -> CommandResult:
        try:
            credits = int(parts[2]) if len(parts) == 3 else -1
        except ValueError:
            credits = -1
        if credits < 0:
            return self._reply(player_id, "invalid", "[TRIVIA] Usage: /trivia reward <credits>")
        self.scheduler.set_reward_credits(credits)
        try:
            save_trivia_config(self.config_path, self.scheduler.config)
        except OSError as exc:
            self._logger.warning("Could not save trivia config: %s", exc)
        return self._reply(player_id, "ok", f"[TRIVIA] Reward set to {credits} cr.")

    def _reply(self, player_id: int, status: str, text: str) -> CommandResult:
        try:
            self._messenger.send_private(player_id, text)
        except Exception:
            self._logger.warning("Private message to %s failed", player_id, exc_info=True)
        return CommandResult(status=status, message=text)

    def _attach_file_log(self) -> None:
        handler = logging.FileHandler(self._mod_dir / LOG_FILE, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger = logging.getLogger("game_mod_engine")
        package_logger.addHandler(handler)
        if package_logger.level == logging.NOTSET:
            package_logger.setLevel(logging.INFO)
        self._file_handler = handler
