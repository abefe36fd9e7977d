"""
Maintenance task model.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Float, Date, DateTime
from mechmate.database import Base

TASK_STATUS_PENDING = "pending"
TASK_STATUS_COMPLETED = "completed"
TASK_STATUS_OVERDUE = "overdue"


class Task(Base):
    """Recurring maintenance task for one piece of equipment."""

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    # Not enforced as foreign keys: the notification scan must survive
    # tasks whose equipment or task type has since been removed
    equipment_id = Column(Integer, nullable=False, index=True)
    task_type_id = Column(Integer, nullable=False)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Recurrence (either or both)
    usage_interval = Column(Float, nullable=True)
    time_interval_days = Column(Integer, nullable=True)

    last_completed_usage_value = Column(Float, nullable=True)
    last_completed_date = Column(Date, nullable=True)
    next_due_usage_value = Column(Float, nullable=True)
    next_due_date = Column(Date, nullable=True, index=True)

    priority = Column(String(20), nullable=False, default="medium")  # low, medium, high, critical
    status = Column(String(20), nullable=False, default=TASK_STATUS_PENDING, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
