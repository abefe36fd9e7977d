"""
Push notification models: subscriptions, global settings and the sent log.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Index
from mechmate.database import Base


class NotificationSubscription(Base):
    """A browser push subscription registered by a client device."""

    __tablename__ = "notification_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    endpoint = Column(Text, unique=True, nullable=False)
    p256dh_key = Column(String(255), nullable=False)
    auth_key = Column(String(255), nullable=False)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    last_used_at = Column(DateTime, default=datetime.utcnow)


class NotificationSettings(Base):
    """Global notification switches. Single row, id=1."""

    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)

    threshold_one_month = Column(Boolean, nullable=False, default=True)
    threshold_two_weeks = Column(Boolean, nullable=False, default=True)
    threshold_one_week = Column(Boolean, nullable=False, default=True)
    threshold_three_days = Column(Boolean, nullable=False, default=True)
    threshold_one_day = Column(Boolean, nullable=False, default=True)
    threshold_due_date = Column(Boolean, nullable=False, default=True)
    threshold_overdue_daily = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class NotificationLog(Base):
    """Sent notifications log, used to avoid repeating a threshold on the same day."""

    __tablename__ = "notification_log"
    __table_args__ = (
        Index("ix_notification_log_key", "task_id", "threshold_type", "notification_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, nullable=False)
    threshold_type = Column(String(30), nullable=False)
    notification_date = Column(String(10), nullable=False)  # YYYY-MM-DD

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
