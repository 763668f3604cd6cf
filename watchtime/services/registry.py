"""
Creator registry reader.

The registry table is maintained elsewhere; the tracking engine reads it at
the start of every run so newly added creators are picked up without a
restart.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from watchtime.core.errors import UnsupportedPlatformError
from watchtime.models.creator import Creator, Platform


@dataclass(frozen=True)
class CreatorRef:
    internal_id: int
    platform_identifier: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.platform_identifier


def list_creators(db: Session, platform: Optional[str] = None) -> list[CreatorRef]:
    """Return the creators to poll, optionally restricted to one platform."""
    q = db.query(Creator.id, Creator.platform_id, Creator.display_name)
    if platform is not None:
        try:
            key = Platform(platform)
        except ValueError:
            raise UnsupportedPlatformError(platform) from None
        q = q.filter(Creator.platform == key)
    return [
        CreatorRef(internal_id=row.id, platform_identifier=row.platform_id, display_name=row.display_name)
        for row in q.order_by(Creator.id).all()
    ]
