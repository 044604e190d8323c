"""Repository layer for database operations."""

import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import desc

from moriminder.errors import PersistenceFailed
from moriminder.models.task import Task
from moriminder.database.models import TaskDB

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for Task database operations."""

    def __init__(self, db: Session):
        self.db = db

    def save(self, task: Task) -> Task:
        """Insert a new task or update the stored one with the same id.

        Raises:
            PersistenceFailed: If the database rejects the write
        """
        try:
            task_db = self.db.query(TaskDB).filter(TaskDB.id == task.id).first()
            if task_db is None:
                task_db = TaskDB.from_pydantic(task)
                self.db.add(task_db)
            else:
                task_db.apply(task)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Saved task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save task {task.id}: {type(e).__name__}: {str(e)}")
            raise PersistenceFailed(f"Failed to save task {task.id}") from e

    def find_by_id(self, task_id: str) -> Optional[Task]:
        """Get task by ID."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        return task_db.to_pydantic() if task_db else None

    def get_all(self) -> List[Task]:
        """Get all tasks sorted by creation date (newest first)."""
        tasks_db = self.db.query(TaskDB).order_by(desc(TaskDB.created_at)).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def get_open(self) -> List[Task]:
        """Get all tasks that are not completed."""
        tasks_db = self.db.query(TaskDB).filter(TaskDB.is_completed.is_(False)).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def get_occurrences(self, parent_task_id: str) -> List[Task]:
        """Get the generated occurrences of a repeating task, oldest first."""
        tasks_db = self.db.query(TaskDB).filter(
            TaskDB.parent_task_id == parent_task_id,
        ).order_by(TaskDB.occurrence_start).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def find_occurrence(self, parent_task_id: str, occurrence_start: datetime) -> Optional[Task]:
        """Get the stored occurrence of a series at a given start, if any."""
        task_db = self.db.query(TaskDB).filter(
            TaskDB.parent_task_id == parent_task_id,
            TaskDB.occurrence_start == occurrence_start,
        ).first()
        return task_db.to_pydantic() if task_db else None

    def delete(self, task_id: str) -> bool:
        """Delete a task by ID."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        if not task_db:
            return False

        try:
            self.db.delete(task_db)
            self.db.commit()
            logger.debug(f"Deleted task {task_id}")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete task {task_id}: {type(e).__name__}: {str(e)}")
            raise PersistenceFailed(f"Failed to delete task {task_id}") from e
