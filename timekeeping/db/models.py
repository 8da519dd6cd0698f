from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Float, Integer, Numeric, String, Text, Time, UniqueConstraint

from timekeeping.db.session import Base


class TimeEntryRow(Base):
    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, nullable=False, index=True)
    client_key = Column(String(100), nullable=False, index=True)
    area_name = Column(String(200), nullable=False)
    work_date = Column(Date, nullable=False, index=True)
    hours = Column(Numeric(scale=2), nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    description = Column(Text, nullable=True)
    activity_kind = Column(String(20), nullable=False, default="remote")  # remote|on_site
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    signature = Column(Text, nullable=True)
    # Legacy integer code: 0 pending, 1 approved, 2 rejected, 3 approved without overtime
    approval_code = Column(Integer, nullable=False, default=0)
    approver_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SettingRow(Base):
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(200), nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ClientAreaRow(Base):
    __tablename__ = "client_areas"
    __table_args__ = (UniqueConstraint("client_key", "area_name", name="uq_client_area"),)

    id = Column(Integer, primary_key=True, index=True)
    client_key = Column(String(100), nullable=False, index=True)
    area_name = Column(String(200), nullable=False)
    coordinator_id = Column(Integer, nullable=True, index=True)
