"""Many-to-many links between two tasks of the same owner."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from datetime import datetime
from todoapp.models.base import Base


class TaskRelationship(Base):
    """Link row keyed by (parent_id, child_id).

    Distinct from ``Task.parent_id``, which is the one-to-many hierarchy.
    """

    __tablename__ = "task_relationships"
    parent_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    child_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
