from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.portal.models import Base, new_id, utcnow

if TYPE_CHECKING:
    from app.portal.models import User
    from app.portal.modules.submissions.models import Submission


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Display name only; the leader account is the user with role "leader" in this group.
    leader_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    members: Mapped[list["User"]] = relationship(
        "User",
        back_populates="group",
        lazy="selectin",
    )

    submissions: Mapped[list["Submission"]] = relationship(
        "Submission",
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="select",
    )
