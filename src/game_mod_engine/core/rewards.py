from __future__ import annotations

import logging

from .config import Reward
from .normalize import render_template
from .ports import ConsoleCommandPort


class ConsoleCommandRewardGrantor:
    """Grants credits by running the configured host console command."""

    def __init__(self, console: ConsoleCommandPort, logger: logging.Logger | None = None):
        self._console = console
        self._logger = logger or logging.getLogger(__name__)

    def grant(self, player_id: int, reward: Reward) -> bool:
        amount = int(reward.credits)
        if amount <= 0:
            # zero-credit rounds are used for testing payouts end to end
            return True
        template = (reward.console_command_template or "").strip()
        if not template:
            self._logger.warning("No console command template set; cannot grant %s to %s", amount, player_id)
            return False
        command = render_template(template, playerId=player_id, amount=amount)
        try:
            self._console.execute(command)
        except Exception:
            self._logger.exception("Console command failed: %s", command)
            return False
        self._logger.info("Executed console: %s", command)
        return True
