from __future__ import annotations

import json
import logging
from typing import Callable

from ..core.normalize import dump_json, utc_now
from ..core.types import PersistedRoundResult
from .files import FileSystemPort, LocalFileSystem
from .interfaces import UnitOfWork


class JsonRoundResultRepo:
    """Single JSON document at a fixed path, overwritten on every save."""

    def __init__(self, path: str, fs: FileSystemPort | None = None, logger: logging.Logger | None = None):
        self._path = str(path)
        self._fs = fs or LocalFileSystem()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> PersistedRoundResult | None:
        if not self._fs.exists(self._path):
            return None
        try:
            data = json.loads(self._fs.read_text(self._path))
            if not isinstance(data, dict):
                raise ValueError("round result must be a JSON object")
            result = PersistedRoundResult.from_dict(data)
        except (OSError, ValueError, TypeError) as exc:
            self._logger.warning("Unreadable round result %s: %s", self._path, exc)
            return None
        if not result.round_id:
            return None
        self._logger.info(
            "Last round id: %s, winners: %d, claimed: %d",
            result.round_id,
            len(result.winners),
            len(result.claimed),
        )
        return result

    def save(self, result: PersistedRoundResult) -> None:
        tmp_path = self._path + ".tmp"
        self._fs.write_text(tmp_path, dump_json(result.to_dict(), indent=2))
        self._fs.replace(tmp_path, self._path)


class SQLAlchemyRoundResultRepo:
    """Round results kept as rows; ``load`` returns the newest round."""

    def __init__(self, uow_factory: Callable[[], UnitOfWork], clock=None):
        self._uow_factory = uow_factory
        self._clock = clock or utc_now

    def load(self) -> PersistedRoundResult | None:
        with self._uow_factory() as uow:
            row = uow.round_results.latest()
            if row is None:
                return None
            return self._to_result(row)

    def get(self, round_id: str) -> PersistedRoundResult | None:
        with self._uow_factory() as uow:
            row = uow.round_results.get(round_id)
            return self._to_result(row) if row is not None else None

    def save(self, result: PersistedRoundResult) -> None:
        now = self._clock()
        with self._uow_factory() as uow:
            previous = uow.round_results.get(result.round_id)
            already = set(json.loads(previous.claimed_json)) if previous is not None else set()
            uow.round_results.upsert(
                round_id=result.round_id,
                winners_json=json.dumps(list(result.winners)),
                claimed_json=json.dumps(list(result.claimed)),
                dry_run=result.dry_run,
                top_score=result.top_score,
                now=now,
            )
            for player_id in result.claimed:
                if player_id not in already:
                    uow.claims.add(result.round_id, player_id, claimed_at=now)
            uow.commit()

    @staticmethod
    def _to_result(row) -> PersistedRoundResult:
        return PersistedRoundResult.from_dict(
            {
                "roundId": row.round_id,
                "winners": json.loads(row.winners_json or "[]"),
                "claimed": json.loads(row.claimed_json or "[]"),
                "dryRun": row.dry_run,
                "topScore": row.top_score,
            }
        )
