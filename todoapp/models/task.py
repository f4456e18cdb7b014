"""Task model for the todo list."""

from sqlalchemy import Column, Integer, Text, String, Boolean, JSON, ForeignKey, Index
from todoapp.models.base import Base, TimestampMixin


class Task(Base, TimestampMixin):
    """A to-do item owned by exactly one user.

    ``images`` holds a list of blob URLs and ``files`` a list of
    ``{"name", "url"}`` records. ``sequence`` orders a user's tasks
    ascending; it does not need to be contiguous.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_sequence", "user_id", "sequence"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    text = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    done = Column(Boolean, default=False, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    files = Column(JSON, default=list, nullable=False)
    parent_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    sequence = Column(Integer, default=0, nullable=False)
