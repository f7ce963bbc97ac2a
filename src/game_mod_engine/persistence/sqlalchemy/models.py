from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class RoundResultRow(TimestampMixin, Base):
    __tablename__ = "gme_round_results"

    round_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    winners_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    claimed_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    top_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


Index("ix_gme_round_results_created", RoundResultRow.created_at.desc())


class ClaimLog(Base):
    __tablename__ = "gme_claim_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    round_id: Mapped[str] = mapped_column(String(32), ForeignKey("gme_round_results.round_id"), nullable=False)
    player_id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_gme_claim_round_player"),
    )
