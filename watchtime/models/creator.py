"""
Creator — identity anchor, owned by the creator registry.

The tracking engine only reads this table. Discovery jobs that run outside
this package insert and update rows.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Enum, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
import enum

from watchtime.db.base import Base
from watchtime.db.types import UTCDateTime


class Platform(str, enum.Enum):
    twitch = "twitch"
    kick = "kick"


class Creator(Base):
    __tablename__ = "creators"
    __table_args__ = (
        UniqueConstraint("platform", "platform_id", name="uq_creator_platform_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    platform: Mapped[str] = mapped_column(
        Enum(Platform, name="platform_enum"), nullable=False, index=True
    )
    platform_id: Mapped[str] = mapped_column(
        String(128), nullable=False,
        comment="Identifier the platform API is queried with (Twitch user id, Kick slug)",
    )
    username: Mapped[str | None] = mapped_column(String(128), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
