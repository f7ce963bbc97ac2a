from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import ClaimLog, RoundResultRow


class RoundResultRowRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, round_id: str) -> RoundResultRow | None:
        return self.session.get(RoundResultRow, round_id)

    def latest(self) -> RoundResultRow | None:
        stmt = (
            select(RoundResultRow)
            .order_by(RoundResultRow.created_at.desc(), RoundResultRow.round_id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(
        self,
        round_id: str,
        winners_json: str,
        claimed_json: str,
        dry_run: bool,
        top_score: int,
        now: datetime,
    ) -> RoundResultRow:
        row = self.get(round_id)
        if row is None:
            row = RoundResultRow(round_id=round_id, created_at=now)
            self.session.add(row)
        row.winners_json = winners_json
        row.claimed_json = claimed_json
        row.dry_run = dry_run
        row.top_score = top_score
        row.updated_at = now
        self.session.flush()
        return row


class ClaimLogRepo:
    def __init__(self, session: Session):
        self.session = session

    def add(self, round_id: str, player_id: int, claimed_at: datetime) -> ClaimLog:
        row = ClaimLog(round_id=round_id, player_id=player_id, claimed_at=claimed_at)
        self.session.add(row)
        self.session.flush()
        return row

    def list_for_round(self, round_id: str) -> list[ClaimLog]:
        stmt = (
            select(ClaimLog)
            .where(ClaimLog.round_id == round_id)
            .order_by(ClaimLog.claimed_at.asc())
        )
        return list(self.session.execute(stmt).scalars().all())
