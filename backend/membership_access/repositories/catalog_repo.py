"""
Catalog repository - read-only access to training modules and lessons.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from membership_access.models.training import TrainingModule, TrainingLesson


class CatalogRepository:
    """Read-only catalog queries."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def list_active_modules(self) -> List[TrainingModule]:
        return (
            self.db_session.query(TrainingModule)
            .filter(TrainingModule.is_active == True)  # noqa: E712
            .order_by(TrainingModule.position, TrainingModule.id)
            .all()
        )

    def get_module(self, module_id: str) -> Optional[TrainingModule]:
        return (
            self.db_session.query(TrainingModule)
            .filter(TrainingModule.id == module_id)
            .first()
        )

    def get_lesson(self, lesson_id: str) -> Optional[TrainingLesson]:
        return (
            self.db_session.query(TrainingLesson)
            .filter(TrainingLesson.id == lesson_id)
            .first()
        )
