import uuid

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB

from payroll_admin.database import Base

_JSON = JSON().with_variant(JSONB(), "postgresql")


class IntegrationToken(Base):
    __tablename__ = "integration_tokens"

    integration_name = Column(String, primary_key=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    token_type = Column(String, nullable=False, default="Bearer")
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SyncLog(Base):
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_id = Column(String, nullable=False, unique=True)
    integration_name = Column(String, nullable=False, default="zoho_people")
    type = Column(String, nullable=False)
    direction = Column(String, nullable=False)
    status = Column(String, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    records_processed = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)


class IntegrationHealthCheck(Base):
    __tablename__ = "integration_health"

    id = Column(Integer, primary_key=True, autoincrement=True)
    integration_name = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    last_sync = Column(DateTime(timezone=True), nullable=True)
    uptime = Column(Float, nullable=False, default=0)
    api_response_time = Column(Float, nullable=False, default=0)
    error_rate = Column(Float, nullable=False, default=0)
    total_syncs = Column(Integer, nullable=False, default=0)
    successful_syncs = Column(Integer, nullable=False, default=0)
    failed_syncs = Column(Integer, nullable=False, default=0)
    checked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AlertRule(Base):
    __tablename__ = "alert_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    integration_name = Column(String, nullable=False, default="zoho_people")
    name = Column(String, nullable=False)
    condition = Column(String, nullable=False)
    threshold = Column(Float, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True)
    notification_channels = Column(_JSON, nullable=False, default=list)
    escalation_level = Column(Integer, nullable=False, default=1)


class NotificationChannel(Base):
    __tablename__ = "notification_channels"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    configuration = Column(_JSON, nullable=False, default=dict)
    enabled = Column(Boolean, nullable=False, default=True)


class IntegrationAlert(Base):
    __tablename__ = "integration_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    integration_name = Column(String, nullable=False, default="zoho_people")
    rule_id = Column(String(36), nullable=False, index=True)
    rule_name = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    health_status = Column(String, nullable=False)
    triggered_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False)
    check_in = Column(String, nullable=True)
    check_out = Column(String, nullable=True)
    total_hours = Column(Numeric(6, 2), nullable=True)
    overtime_hours = Column(Numeric(6, 2), nullable=True)
    status = Column(String, nullable=False)
    leave_type = Column(String, nullable=True)
    remarks = Column(Text, nullable=True)
