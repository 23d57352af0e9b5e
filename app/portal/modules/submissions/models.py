from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.portal.models import Base, new_id, utcnow

if TYPE_CHECKING:
    from app.portal.modules.groups.models import Group


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Public path handed to clients, e.g. "/uploads/<uuid>.pdf".
    file_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    # Key inside the storage backend; null for records created without an upload.
    storage_key: Mapped[str | None] = mapped_column(String(512), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    uploaded_by: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="submissions",
        lazy="selectin",
    )
