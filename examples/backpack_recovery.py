from __future__ import annotations

import tempfile

from game_mod_engine.core.types import ItemStack, Record
from game_mod_engine.persistence.record_store import RecordStore


def main() -> None:
    with tempfile.TemporaryDirectory() as data_dir:
        store = RecordStore(data_dir)

        record = Record.empty(store.config.slot_count)
        record.items[0] = ItemStack(id=2053, count=1, slot_idx=0)
        record.items[1] = ItemStack(id=4421, count=20, slot_idx=1)
        print("save:", store.save("42:1", record).status)

        with open(store.path_for("42:1"), "w", encoding="utf-8") as fh:
            fh.write('{"items": [{"id": 20')

        recovered, source = store.load_with_source("42:1")
        print("recovered from:", source)
        print("occupied slots:", [(item.slot_idx, item.id, item.count) for item in recovered.items if item.occupied])


if __name__ == "__main__":
    main()
