from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Any

import yaml

from ..core.ports import BackpackUIPort, MessengerPort, RewardGrantorPort
from ..core.types import ItemStack, Record, RecordKey, SaveResult
from ..persistence.record_store import RecordStore
from ..persistence.starter_kit import StarterKitPolicy

ADMIN_FILE = "VirtualBackpackMod.yaml"
STARTER_KIT_FILE = "StarterKitContents.json"
DATA_DIR = "PlayerData"
MAX_SLOTS = 6
ADMIN_PERMISSIONS = frozenset({3, 9})

_SLOT_COMMAND_RE = re.compile(r"^/vb([1-9])$")

logger = logging.getLogger(__name__)


def load_admin_list(path: str | Path) -> set[int]:
    """Read ``AdminList`` from the mod's YAML file. Bad entries are skipped."""
    path = Path(path)
    if not path.exists():
        logger.info("%s not found; relying on host permissions for admins", path.name)
        return set()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Error loading %s: %s", path.name, exc)
        return set()
    raw = data.get("AdminList") if isinstance(data, dict) else None
    admins: set[int] = set()
    for entry in raw or []:
        try:
            admins.add(int(entry))
        except (TypeError, ValueError):
            logger.warning("Ignoring admin entry %r in %s", entry, path.name)
    logger.info("Loaded %d admins from %s", len(admins), path.name)
    return admins


class BackpackMod:
    """Per-player virtual storage slots (``/vb1`` to ``/vb6``) backed by a ``RecordStore``.

    Players open their own slots. Admins can open any player's slot with
    ``/vbopen <playerId> <slot>``; an admin backup is taken before the UI is
    shown, and the owner is told when the admin's edit is saved. A slot open in
    one UI is locked against a second opener until the exchange completes.
    """

    def __init__(
        self,
        mod_dir: str | Path,
        ui: BackpackUIPort,
        messenger: MessengerPort,
        *,
        grantor: RewardGrantorPort | None = None,
        store: RecordStore | None = None,
    ):
        self._mod_dir = Path(mod_dir)
        self._ui = ui
        self._messenger = messenger
        self.starter_kit = StarterKitPolicy(self._mod_dir / STARTER_KIT_FILE, grantor=grantor)
        self.store = store or RecordStore(
            str(self._mod_dir / DATA_DIR),
            default_policy=self.starter_kit,
        )
        self.admin_ids = load_admin_list(self._mod_dir / ADMIN_FILE)

        self._state_lock = threading.Lock()
        self._permissions: dict[int, int] = {}
        self._active_slots: dict[int, int] = {}
        self._admin_targets: dict[int, RecordKey] = {}
        self._open_keys: set[RecordKey] = set()

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def on_player_info(self, player_id: int, permission: int) -> None:
        with self._state_lock:
            self._permissions[player_id] = int(permission)

    def on_player_disconnected(self, player_id: int) -> None:
        with self._state_lock:
            self._permissions.pop(player_id, None)
            slot = self._active_slots.pop(player_id, None)
            if slot is not None:
                self._open_keys.discard(RecordKey(str(player_id), slot))
            target = self._admin_targets.pop(player_id, None)
            if target is not None:
                self._open_keys.discard(target)

    def is_admin(self, player_id: int) -> bool:
        if player_id in self.admin_ids:
            return True
        with self._state_lock:
            return self._permissions.get(player_id) in ADMIN_PERMISSIONS

    def handle_chat(self, player_id: int, text: str) -> str | None:
        """Route one chat line; returns a status, or ``None`` if it is not a backpack command."""
        msg = (text or "").strip().lower()
        if msg.startswith("/vbopen"):
            return self._open_as_admin(player_id, msg.split())
        match = _SLOT_COMMAND_RE.match(msg)
        if match is None:
            return None
        slot = int(match.group(1))
        if slot > MAX_SLOTS:
            self._tell(player_id, f"Backpack slots are 1 to {MAX_SLOTS}.")
            return "invalid_slot"
        return self.open_own(player_id, slot)

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def open_own(self, player_id: int, slot: int) -> str:
        key = RecordKey(str(player_id), slot)
        with self._state_lock:
            previous = self._active_slots.pop(player_id, None)
            if previous is not None:
                self._open_keys.discard(RecordKey(str(player_id), previous))
        if not self._claim(key):
            self._tell(player_id, f"Backpack {slot} is being edited by an admin. Try again shortly.")
            return "in_use"
        with self._state_lock:
            self._active_slots[player_id] = slot

        record, source = self.store.load_with_source(key)
        if source == "default":
            result = self.store.save(key, record)
            if not result.ok:
                logger.warning("Could not persist starter kit for %s: %s", key, result.reason)
        logger.info("Player %s opened backpack %d (%s)", player_id, slot, source)
        self._ui.show(player_id, f"Virtual Backpack {slot}", record.items)
        return "ok"

    def _open_as_admin(self, admin_id: int, parts: list[str]) -> str:
        if not self.is_admin(admin_id):
            logger.warning("Player %s attempted /vbopen without permission", admin_id)
            self._tell(admin_id, "You don't have permission to use /vbopen.")
            return "forbidden"
        try:
            if len(parts) != 3:
                raise ValueError("wrong argument count")
            target_id, slot = int(parts[1]), int(parts[2])
        except ValueError:
            self._tell(admin_id, "Usage: /vbopen <playerId> <slot>")
            return "invalid"
        if not 1 <= slot <= MAX_SLOTS:
            self._tell(admin_id, f"Backpack slots are 1 to {MAX_SLOTS}.")
            return "invalid_slot"

        key = RecordKey(str(target_id), slot)
        if not self._claim(key):
            self._tell(admin_id, f"Backpack {slot} of player {target_id} is already open.")
            return "in_use"
        with self._state_lock:
            self._admin_targets[admin_id] = key

        self.store.create_admin_backup(key)
        record = self.store.load(key)
        logger.info("Admin %s opened backpack %s", admin_id, key)
        self._ui.show(admin_id, f"Player {target_id}'s Backpack {slot}", record.items)
        return "ok"

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def on_item_exchange(self, player_id: int, items: list[ItemStack | dict[str, Any]]) -> SaveResult | None:
        """Persist the contents reported when ``player_id`` closes a backpack UI."""
        stacks = [item if isinstance(item, ItemStack) else ItemStack.from_dict(item) for item in items or []]
        with self._state_lock:
            admin_key = self._admin_targets.pop(player_id, None)
            own_slot = None if admin_key is not None else self._active_slots.get(player_id)

        if admin_key is not None:
            try:
                return self._save_admin_edit(player_id, admin_key, stacks)
            finally:
                self._release(admin_key)

        if own_slot is None:
            logger.warning("Item exchange from %s with no open backpack", player_id)
            return None
        key = RecordKey(str(player_id), own_slot)
        try:
            return self.store.save(key, Record(items=stacks))
        finally:
            self._release(key)

    def _save_admin_edit(self, admin_id: int, key: RecordKey, stacks: list[ItemStack]) -> SaveResult | None:
        if not stacks:
            logger.warning("Admin %s closed %s with no items reported; keeping stored contents", admin_id, key)
            return None
        result = self.store.save(key, Record(items=stacks))
        if not result.ok:
            self._tell(admin_id, f"Saving backpack {key} failed; the previous contents were kept.")
            return result
        logger.info("Admin %s saved backpack %s", admin_id, key)
        try:
            owner_id = int(key.owner)
        except ValueError:
            return result
        self._tell(owner_id, f"An admin has updated your Virtual Backpack #{key.slot}.")
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _claim(self, key: RecordKey) -> bool:
        with self._state_lock:
            if key in self._open_keys:
                return False
            self._open_keys.add(key)
            return True

    def _release(self, key: RecordKey) -> None:
        with self._state_lock:
            self._open_keys.discard(key)

    def _tell(self, player_id: int, text: str) -> None:
        try:
            self._messenger.send_private(player_id, text)
        except Exception:
            logger.warning("Private message to %s failed", player_id, exc_info=True)
