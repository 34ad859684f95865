from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, Numeric, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class VacationRequest(Base):
    __tablename__ = "vacation_requests"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status_while_away = Column(String(200), nullable=True)
    manager_email = Column(String(200), nullable=True)
    comments = Column(Text, nullable=True)
    review_status = Column(String(20), nullable=True, default="unreviewed", index=True)
    step1_auth_manager = Column(String(20), nullable=True, default="pendiente")
    step2_auth_rh = Column(String(20), nullable=True, default="pendiente")
    step3_contract_signature = Column(String(20), nullable=True, default="pendiente")
    step4_congratulations_email = Column(String(20), nullable=True, default="pendiente")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class TravelNotification(Base):
    __tablename__ = "travel_notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    division = Column(String(120), nullable=True)
    destination = Column(String(200), nullable=True)
    purpose = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    additional_expenses_needed = Column(Boolean, nullable=False, default=False)
    additional_expenses_explanation = Column(Text, nullable=True)
    additional_expenses_budget = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    emergency_contact = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    flight_info = Column(Text, nullable=True)
    hotel_booking = Column(Text, nullable=True)
    review_status = Column(String(20), nullable=True, default="unreviewed", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class ItEquipmentRequest(Base):
    __tablename__ = "it_equipment_requests"

    id = Column(String(36), primary_key=True, default=_new_id)
    requester = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    equipment = Column(Text, nullable=True)
    review_status = Column(String(20), nullable=True, default="unreviewed", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class NewsUpdate(Base):
    __tablename__ = "news_updates"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False, default="")
    type = Column(String(10), nullable=False, default="slide")
    is_active = Column(Boolean, nullable=False, default=True)
    published_for = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Equipment(Base):
    __tablename__ = "equipos_ti"

    serial_number = Column(String(120), primary_key=True)
    model = Column(String(20), nullable=False)
    assigned_to = Column(String(200), nullable=True)
    insured = Column(Boolean, nullable=False, default=False)
    purchase_date = Column(Date, nullable=True)
    purchase_cost = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class AccessToken(Base):
    __tablename__ = "access_tokens"

    id = Column(String(36), primary_key=True, default=_new_id)
    token_hash = Column(String(128), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
