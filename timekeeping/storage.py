from __future__ import annotations
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import fields
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .core.logging import get_logger
from .db.models import ClientAreaRow, SettingRow, TimeEntryRow
from .db.session import Base, build_engine, build_session_factory, session_scope
from .models import ActivityKind, ApprovalStatus, StoreError, TimeEntry

logger = get_logger(__name__)

ENTRY_FIELDS = {f.name for f in fields(TimeEntry)} - {"id"}


def open_stores(database_url: str, **engine_kwargs) -> Tuple["EntryStore", "SettingsStore"]:
    engine = build_engine(database_url, **engine_kwargs)
    Base.metadata.create_all(bind=engine)
    factory = build_session_factory(engine)
    return EntryStore(factory), SettingsStore(factory)


class EntryStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def list_for_employee(self, employee_id: int) -> List[TimeEntry]:
        with self._session() as db:
            rows = (
                db.query(TimeEntryRow)
                .filter(TimeEntryRow.employee_id == employee_id)
                .order_by(TimeEntryRow.work_date.asc(), TimeEntryRow.id.asc())
                .all()
            )
            return [self._to_entry(row) for row in rows]

    def list_for_coordinator(self, coordinator_id: int) -> List[TimeEntry]:
        """Entries booked against any client the coordinator supervises."""
        with self._session() as db:
            clients = select(ClientAreaRow.client_key).where(ClientAreaRow.coordinator_id == coordinator_id)
            rows = (
                db.query(TimeEntryRow)
                .filter(TimeEntryRow.client_key.in_(clients))
                .order_by(TimeEntryRow.work_date.asc(), TimeEntryRow.id.asc())
                .all()
            )
            return [self._to_entry(row) for row in rows]

    def get(self, entry_id: int) -> TimeEntry:
        with self._session() as db:
            return self._to_entry(self._get_row(db, entry_id))

    def create(self, entry: TimeEntry) -> TimeEntry:
        with self._session() as db:
            row = TimeEntryRow()
            self._apply(row, {name: getattr(entry, name) for name in ENTRY_FIELDS})
            db.add(row)
            db.flush()
            db.refresh(row)
            created = self._to_entry(row)
        logger.info("entry_created", entry_id=created.id, employee_id=created.employee_id)
        return created

    def update(self, entry_id: int, changes: Mapping[str, Any]) -> TimeEntry:
        unknown = set(changes) - ENTRY_FIELDS
        if unknown:
            raise StoreError(f"Unknown entry fields: {', '.join(sorted(unknown))}")
        with self._session() as db:
            row = self._get_row(db, entry_id)
            self._apply(row, changes)
            db.flush()
            db.refresh(row)
            return self._to_entry(row)

    def client_areas(self) -> Dict[str, List[str]]:
        with self._session() as db:
            rows = db.query(ClientAreaRow).order_by(ClientAreaRow.client_key, ClientAreaRow.area_name).all()
            mapping: Dict[str, List[str]] = defaultdict(list)
            for row in rows:
                mapping[row.client_key].append(row.area_name)
            return dict(mapping)

    def register_area(self, client_key: str, area_name: str, coordinator_id: Optional[int] = None) -> None:
        with self._session() as db:
            db.add(ClientAreaRow(client_key=client_key.strip(), area_name=area_name.strip(), coordinator_id=coordinator_id))

    def _session(self):
        return _guarded_scope(self.session_factory)

    @staticmethod
    def _get_row(db, entry_id: int) -> TimeEntryRow:
        row = db.query(TimeEntryRow).filter(TimeEntryRow.id == entry_id).one_or_none()
        if row is None:
            raise StoreError(f"Time entry {entry_id} not found")
        return row

    @staticmethod
    def _apply(row: TimeEntryRow, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            if name == "approval_status":
                row.approval_code = ApprovalStatus(value).code
            elif name == "activity_kind":
                row.activity_kind = ActivityKind(value).value
            elif name == "location":
                row.latitude, row.longitude = value if value is not None else (None, None)
            else:
                setattr(row, name, value)

    @staticmethod
    def _to_entry(row: TimeEntryRow) -> TimeEntry:
        location = None
        if row.latitude is not None and row.longitude is not None:
            location = (row.latitude, row.longitude)
        return TimeEntry(
            id=row.id,
            employee_id=row.employee_id,
            client_key=row.client_key,
            area_name=row.area_name,
            work_date=row.work_date,
            hours=float(row.hours),
            start_time=row.start_time,
            end_time=row.end_time,
            description=row.description,
            activity_kind=ActivityKind(row.activity_kind),
            location=location,
            signature=row.signature,
            approval_status=ApprovalStatus.from_code(row.approval_code),
            approver_id=row.approver_id,
        )


class SettingsStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def all(self) -> Dict[str, str]:
        with _guarded_scope(self.session_factory) as db:
            return {row.key: row.value for row in db.query(SettingRow).all()}

    def get(self, key: str) -> Optional[str]:
        with _guarded_scope(self.session_factory) as db:
            row = db.get(SettingRow, key)
            return row.value if row is not None else None

    def set(self, key: str, value: Any) -> None:
        with _guarded_scope(self.session_factory) as db:
            row = db.get(SettingRow, key)
            if row is None:
                db.add(SettingRow(key=key, value=str(value)))
            else:
                row.value = str(value)
        logger.info("setting_updated", key=key)


@contextmanager
def _guarded_scope(factory: sessionmaker) -> Iterator[Session]:
    """``session_scope`` that reports database failures as ``StoreError``."""
    try:
        with session_scope(factory) as db:
            yield db
    except SQLAlchemyError as exc:
        raise StoreError(str(exc)) from exc
