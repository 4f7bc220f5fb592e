from __future__ import annotations

import datetime as dt

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

from .categories import ActivityCategory

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Collaborator(Base):
    __tablename__ = "collaborators"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    activities = relationship("Activity", back_populates="collaborator")
    missions = relationship("Mission", back_populates="collaborator", order_by="Mission.id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    address = Column(Text, nullable=True)

    missions = relationship("Mission", back_populates="customer")


class Mission(Base):
    __tablename__ = "missions"
    __table_args__ = (CheckConstraint("start_date <= end_date", name="ck_missions_dates"),)

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    collaborator_id = Column(Integer, ForeignKey("collaborators.id"), nullable=False, index=True)

    customer = relationship("Customer", back_populates="missions")
    collaborator = relationship("Collaborator", back_populates="missions")

    def covers(self, day: dt.date) -> bool:
        return self.start_date <= day <= self.end_date


class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_activities_quantity"),)

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)  # hours
    category = Column(Enum(ActivityCategory, native_enum=False, length=40), nullable=False)
    comment = Column(Text, nullable=True)
    # Nullable for rows imported before collaborators were mandatory.
    collaborator_id = Column(Integer, ForeignKey("collaborators.id"), nullable=True, index=True)
    mission_id = Column(Integer, ForeignKey("missions.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    collaborator = relationship("Collaborator", back_populates="activities")
    mission = relationship("Mission")


class Society(Base):
    __tablename__ = "societies"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    address = Column(Text, nullable=True)
    vat_number = Column(String(50), nullable=True)
    siret = Column(String(20), nullable=True)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    created_at = Column(Date, nullable=False)
    month_year = Column(Date, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    collaborator_id = Column(Integer, ForeignKey("collaborators.id"), nullable=False, index=True)
    mission_id = Column(Integer, ForeignKey("missions.id"), nullable=True)
    bucket = Column(String(100), nullable=False)
    object_key = Column(String(255), nullable=False)

    customer = relationship("Customer")
    collaborator = relationship("Collaborator")
    mission = relationship("Mission")
