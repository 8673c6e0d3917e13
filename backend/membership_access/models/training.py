"""
Training catalog models: modules (gated resources) and their lessons.

A module is the unit of entitlement: it carries the required license.
A lesson belongs to exactly one module and points at a video asset on
the CDN. Lessons flagged is_preview are open content and bypass
entitlement checks entirely.
"""

from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    Text,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import relationship

from membership_access.db_base import Base
from membership_access.models.base import TimestampMixin, generate_uuid


class TrainingModule(Base, TimestampMixin):
    """Gated content grouping."""

    __tablename__ = "training_modules"

    id = Column(String(255), primary_key=True, default=generate_uuid)

    title = Column(String(255), nullable=False)

    description = Column(Text, nullable=True)

    position = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    required_license = Column(
        String(50),
        nullable=True,
        comment="Required tier; NULL is treated as starter"
    )

    lessons = relationship(
        "TrainingLesson",
        back_populates="module",
        order_by="TrainingLesson.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<TrainingModule(id={self.id}, title={self.title}, "
            f"required_license={self.required_license}, is_active={self.is_active})>"
        )


class TrainingLesson(Base, TimestampMixin):
    """Playable lesson backed by a CDN video asset."""

    __tablename__ = "training_lessons"

    id = Column(String(255), primary_key=True, default=generate_uuid)

    module_id = Column(
        String(255),
        ForeignKey("training_modules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(255), nullable=False)

    description = Column(Text, nullable=True)

    bunny_video_id = Column(
        String(255),
        nullable=True,
        comment="Video asset id on the CDN library"
    )

    position = Column(Integer, nullable=False, default=0)

    is_preview = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Open preview, playable without a license"
    )

    module = relationship("TrainingModule", back_populates="lessons")

    __table_args__ = (
        Index("ix_training_lessons_module_position", "module_id", "position"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrainingLesson(id={self.id}, module_id={self.module_id}, "
            f"is_preview={self.is_preview})>"
        )
