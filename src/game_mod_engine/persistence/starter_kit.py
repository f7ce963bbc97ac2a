from __future__ import annotations

import json
import logging
from pathlib import Path

from ..core.config import Reward
from ..core.ports import RewardGrantorPort
from ..core.types import ItemStack, Record, RecordKey


class StarterKitPolicy:
    """First-open contents for the starter slot, read from ``StarterKitContents.json``.

    Used as a ``RecordStore`` default policy. Returns ``None`` for every other
    slot, or when the kit file is missing or empty, which leaves the store to
    hand out an empty record. The optional credit reward is granted each time
    a kit is built; callers persist the record straight away so that happens
    once per owner.
    """

    def __init__(
        self,
        path: str | Path,
        slot: int = 6,
        slot_count: int = 40,
        grantor: RewardGrantorPort | None = None,
        logger: logging.Logger | None = None,
    ):
        self._path = Path(path)
        self._slot = slot
        self._slot_count = slot_count
        self._grantor = grantor
        self._logger = logger or logging.getLogger(__name__)

    @property
    def slot(self) -> int:
        return self._slot

    def __call__(self, key: RecordKey) -> Record | None:
        if key.slot != self._slot:
            return None
        if not self._path.exists():
            self._logger.info("%s not found; no starter kit for %s", self._path.name, key)
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._logger.warning("Error loading starter kit for %s: %s", key, exc)
            return None
        raw_items = data.get("items") if isinstance(data, dict) else None
        if not raw_items:
            self._logger.info("No starter kit items configured for %s", key)
            return None

        items: list[ItemStack] = []
        for idx, raw in enumerate(raw_items[: self._slot_count]):
            item = ItemStack.from_dict(raw if isinstance(raw, dict) else None)
            item.slot_idx = idx
            items.append(item)
        for idx in range(len(items), self._slot_count):
            items.append(ItemStack(slot_idx=idx))

        self._award_credits(key, data)
        self._logger.info("Built starter kit with %d items for %s", len(raw_items), key)
        return Record(items=items)

    def _award_credits(self, key: RecordKey, data: dict) -> None:
        credits = int(data.get("creditsReward", 10000) or 0)
        template = str(data.get("consoleCommandTemplate") or "credits add {playerId} {amount}")
        if self._grantor is None or credits <= 0:
            return
        try:
            player_id = int(key.owner)
        except ValueError:
            self._logger.warning("Starter kit owner %r is not a player id; credits skipped", key.owner)
            return
        reward = Reward(credits=credits, console_command_template=template)
        try:
            granted = self._grantor.grant(player_id, reward)
        except Exception:
            self._logger.exception("Error awarding starter kit credits to %s", player_id)
            return
        if granted:
            self._logger.info("Awarded %d starter kit credits to %s", credits, player_id)
