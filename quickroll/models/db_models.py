"""SQLAlchemy ORM models for quickroll-core."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Actor(Base):
    """A character or NPC that owns items and rolls with them."""

    __tablename__ = "actors"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    img: Mapped[str | None] = mapped_column(String(512), nullable=True)
    actor_type: Mapped[str] = mapped_column(String(16), default="character")  # "character", "npc"
    proficiency: Mapped[int] = mapped_column(Integer, default=0)
    # JSON: {"str": 3, "dex": 1, ...}
    abilities_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON: {"mwak": {"attack": "1", "damage": "1d4"}, ...}
    bonuses_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    check_bonus: Mapped[str] = mapped_column(String(64), default="")
    save_bonus: Mapped[str] = mapped_column(String(64), default="")
    skill_bonus: Mapped[str] = mapped_column(String(64), default="")
    # JSON: {"str": {"value": 3, "prof": 1}, ...}
    saves_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON: {"ath": 5, ...} -- skill totals
    skills_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON: {"savage_attacks": true, "weapon_critical_threshold": 19, ...}
    flags_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON: {"mana": {"remaining": 10, "limit": 5}, "stamina": {...}}
    resources_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    items: Mapped[list[Item]] = relationship(
        back_populates="actor", cascade="all, delete-orphan"
    )

    def __str__(self) -> str:
        return f"{self.name} ({self.id[:8]})"


class Item(Base):
    """An owned item; resource counters are plain columns so commits can lock them."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    actor_id: Mapped[str] = mapped_column(String(32), ForeignKey("actors.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    img: Mapped[str | None] = mapped_column(String(512), nullable=True)
    item_type: Mapped[str] = mapped_column(String(32), nullable=False)
    action_type: Mapped[str] = mapped_column(String(16), default="")
    ability: Mapped[str] = mapped_column(String(16), default="")
    proficient: Mapped[bool] = mapped_column(Boolean, default=False)
    attack_bonus: Mapped[str] = mapped_column(String(64), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    chat_flavor: Mapped[str] = mapped_column(Text, default="")
    cost: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_maneuver: Mapped[bool] = mapped_column(Boolean, default=False)
    target_type: Mapped[str] = mapped_column(String(32), default="")

    # Resources
    uses_value: Mapped[int] = mapped_column(Integer, default=0)
    uses_max: Mapped[int] = mapped_column(Integer, default=0)
    uses_per: Mapped[str | None] = mapped_column(String(16), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    auto_destroy: Mapped[bool] = mapped_column(Boolean, default=False)
    recharge_charged: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consume_type: Mapped[str] = mapped_column(String(16), default="")  # "ammo", "charges", "attribute"
    consume_target: Mapped[str | None] = mapped_column(String(64), nullable=True)
    consume_amount: Mapped[int] = mapped_column(Integer, default=1)

    # JSON: everything else the roll path reads (damage parts, save, scaling, ...)
    system_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON: ActionFlags
    flags_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    actor: Mapped[Actor] = relationship(back_populates="items")

    def __str__(self) -> str:
        return f"{self.name} ({self.item_type})"

    __table_args__ = (Index("ix_item_actor", "actor_id"),)
