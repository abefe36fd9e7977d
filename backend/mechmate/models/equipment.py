"""
Equipment and task type models.

These rows are owned by the equipment CRUD layer; the notification
engine only reads them to name things in messages.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Float, Date, DateTime, ForeignKey
from mechmate.database import Base


class EquipmentType(Base):
    """Equipment category (vehicle, mower, boat, ...)."""

    __tablename__ = "equipment_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)


class Equipment(Base):
    """A piece of owned equipment with a usage counter."""

    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    equipment_type_id = Column(Integer, ForeignKey("equipment_types.id"), nullable=True)

    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    serial_number = Column(String(100), nullable=True)
    purchase_date = Column(Date, nullable=True)

    current_usage_value = Column(Float, nullable=False, default=0)
    usage_unit = Column(String(20), nullable=False, default="miles")
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TaskType(Base):
    """Kind of maintenance work (oil change, tire rotation, ...)."""

    __tablename__ = "task_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    estimated_duration_minutes = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
