"""
SQLAlchemy implementation of the time tracker repository.

Each operation runs in its own short session and transaction, so a single
repository instance can be shared by concurrent request handlers. Mutual
exclusion between concurrent starts and stops is delegated to the store:
opening an entry inserts a row under the unique open key of its user-project
pair, and closing one is an UPDATE guarded by the entry still being open.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

from sqlalchemy import delete, inspect, select, update
from sqlalchemy.exc import (
    DBAPIError, DisconnectionError, IntegrityError, OperationalError, ProgrammingError, SQLAlchemyError
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..errors import Conflict, InternalError, NotFound, StorageUnavailable, TimeTrackerError, ValidationError
from ..schemas import (
    ClosedState, OpenState, Project, TimeEntry, TimeEntryFilter, TimeEntryStatus, User, UserRole, build
)
from .connection import StoreHandle
from .models import Base, ProjectRecord, TimeEntryRecord, UserRecord, open_key_for
from .repository import TimeTrackerRepository, WriteMode

logger = logging.getLogger(__name__)

STREAM_BATCH_SIZE = 100

_RECORD_LABELS = {UserRecord: "User", ProjectRecord: "Project"}


@contextmanager
def translate_store_errors(operation: str, conflict_detail: str = "Conflicting write"):
    """Map SQLAlchemy failures onto the domain error taxonomy."""
    try:
        yield
    except TimeTrackerError:
        raise
    except IntegrityError as exc:
        raise Conflict(conflict_detail) from exc
    except (OperationalError, DisconnectionError, PoolTimeoutError) as exc:
        logger.warning(f"Store unavailable during {operation}: {exc}")
        raise StorageUnavailable(f"Store unavailable during {operation}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            logger.warning(f"Store connection lost during {operation}: {exc}")
            raise StorageUnavailable(f"Store unavailable during {operation}") from exc
        logger.error(f"Unexpected store error during {operation}: {exc}", exc_info=True)
        raise InternalError(f"Unexpected store error during {operation}") from exc
    except SQLAlchemyError as exc:
        logger.error(f"Unexpected store error during {operation}: {exc}", exc_info=True)
        raise InternalError(f"Unexpected store error during {operation}") from exc


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to timestamps read back from stores that drop the offset."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_user(record: UserRecord) -> User:
    try:
        return build(
            User,
            id=record.id,
            username=record.username,
            api_key=record.api_key,
            role=record.role,
            created_at=_utc(record.created_at),
            created_by=record.created_by,
        )
    except ValidationError as exc:
        raise InternalError(f"Malformed user record {record.id}: {exc.detail}") from exc


def _to_project(record: ProjectRecord) -> Project:
    try:
        return build(
            Project,
            id=record.id,
            name=record.name,
            owner_id=record.owner_id,
            created_at=_utc(record.created_at),
            modified_at=_utc(record.modified_at),
        )
    except ValidationError as exc:
        raise InternalError(f"Malformed project record {record.id}: {exc.detail}") from exc


def _to_entry(record: TimeEntryRecord) -> TimeEntry:
    if record.stopped_at is None:
        state = OpenState()
    else:
        state = {
            "status": TimeEntryStatus.FINISHED,
            "stopped_at": _utc(record.stopped_at),
            "duration": record.duration,
        }
    try:
        return build(
            TimeEntry,
            id=record.id,
            project_id=record.project_id,
            user_id=record.user_id,
            started_at=_utc(record.started_at),
            comment=record.comment,
            state=state,
        )
    except ValidationError as exc:
        raise InternalError(f"Malformed time entry record {record.id}: {exc.detail}") from exc


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        api_key=user.api_key,
        role=user.role,
        created_at=user.created_at,
        created_by=user.created_by,
    )


class TimeEntrySequence:
    """Lazy, restartable view over the time entries matching a filter."""

    def __init__(self, store: StoreHandle, entry_filter: TimeEntryFilter):
        self._store = store
        self.filter = entry_filter

    def _statement(self):
        query = select(TimeEntryRecord)
        entry_filter = self.filter
        if entry_filter.user_id is not None:
            query = query.where(TimeEntryRecord.user_id == entry_filter.user_id)
        if entry_filter.project_id is not None:
            query = query.where(TimeEntryRecord.project_id == entry_filter.project_id)
        if entry_filter.status is TimeEntryStatus.IN_PROGRESS:
            query = query.where(TimeEntryRecord.stopped_at.is_(None))
        elif entry_filter.status is TimeEntryStatus.FINISHED:
            query = query.where(TimeEntryRecord.stopped_at.is_not(None))
        if entry_filter.started_from is not None:
            query = query.where(TimeEntryRecord.started_at >= entry_filter.started_from)
        if entry_filter.started_before is not None:
            query = query.where(TimeEntryRecord.started_at < entry_filter.started_before)
        return query.order_by(TimeEntryRecord.started_at, TimeEntryRecord.id)

    def __iter__(self) -> Iterator[TimeEntry]:
        with translate_store_errors("list_time_entries"):
            with self._store.session() as session:
                rows = session.execute(
                    self._statement().execution_options(yield_per=STREAM_BATCH_SIZE)
                ).scalars()
                for record in rows:
                    yield _to_entry(record)


class SqlAlchemyRepository(TimeTrackerRepository):
    """Repository over any SQLAlchemy-supported database."""

    def __init__(self, store: StoreHandle):
        self._store = store

    @contextmanager
    def _transaction(self, operation: str, conflict_detail: str = "Conflicting write"):
        with translate_store_errors(operation, conflict_detail):
            with self._store.session() as session, session.begin():
                yield session

    def _raise_missing(self, operation: str, *references):
        """
        Report a referenced row that vanished as NotFound.

        A rejected insert surfaces as Conflict whether a unique key or a
        foreign key failed; this tells the two apart after the fact.
        """
        with self._transaction(operation) as session:
            for record_type, key in references:
                if session.get(record_type, key) is None:
                    raise NotFound(f"{_RECORD_LABELS[record_type]} not found")

    # Layout

    def ensure_layout(self) -> bool:
        engine = self._store.engine
        required = set(Base.metadata.tables)
        with translate_store_errors("ensure_layout"):
            missing = required - set(inspect(engine).get_table_names())
            if not missing:
                return False
            try:
                Base.metadata.create_all(bind=engine, checkfirst=True)
            except (OperationalError, ProgrammingError):
                # Another instance may have created the tables between our check and create
                if required - set(inspect(engine).get_table_names()):
                    raise
                return False
        logger.info(f"Created storage layout: {', '.join(sorted(missing))}")
        return True

    # Users

    def get_user_by_api_key(self, api_key: str) -> User:
        with self._transaction("get_user_by_api_key") as session:
            record = session.execute(
                select(UserRecord).where(UserRecord.api_key == api_key)
            ).scalar_one_or_none()
            if record is None:
                raise NotFound("User not found")
            return _to_user(record)

    def get_user_by_id(self, user_id: str) -> User:
        with self._transaction("get_user_by_id") as session:
            record = session.get(UserRecord, user_id)
            if record is None:
                raise NotFound("User not found")
            return _to_user(record)

    def put_user(self, user: User, mode: WriteMode = WriteMode.CREATE_ONLY) -> User:
        detail = f"User with name '{user.username}' or the same API key already exists"
        with self._transaction("put_user", detail) as session:
            if mode is WriteMode.CREATE_ONLY:
                session.add(_user_record(user))
            else:
                session.merge(_user_record(user))
            session.flush()
        return user

    def list_users(self) -> List[User]:
        with self._transaction("list_users") as session:
            records = session.execute(
                select(UserRecord).order_by(UserRecord.created_at, UserRecord.id)
            ).scalars()
            return [_to_user(record) for record in records]

    def has_user_with_role(self, role: UserRole) -> bool:
        with self._transaction("has_user_with_role") as session:
            found = session.execute(
                select(UserRecord.id).where(UserRecord.role == role).limit(1)
            ).first()
            return found is not None

    def delete_user(self, user_id: str) -> None:
        with self._transaction("delete_user") as session:
            if session.get(UserRecord, user_id) is None:
                raise NotFound("User not found")
            owned = select(ProjectRecord.id).where(ProjectRecord.owner_id == user_id)
            session.execute(
                delete(TimeEntryRecord)
                .where((TimeEntryRecord.user_id == user_id) | TimeEntryRecord.project_id.in_(owned))
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(ProjectRecord)
                .where(ProjectRecord.owner_id == user_id)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(UserRecord).where(UserRecord.id == user_id).execution_options(synchronize_session=False)
            )

    # Projects

    def get_project(self, project_id: str) -> Project:
        with self._transaction("get_project") as session:
            record = session.get(ProjectRecord, project_id)
            if record is None:
                raise NotFound("Project not found")
            return _to_project(record)

    def list_projects_by_owner(self, user_id: str) -> List[Project]:
        with self._transaction("list_projects_by_owner") as session:
            records = session.execute(
                select(ProjectRecord)
                .where(ProjectRecord.owner_id == user_id)
                .order_by(ProjectRecord.created_at, ProjectRecord.id)
            ).scalars()
            return [_to_project(record) for record in records]

    def put_project(self, project: Project, mode: WriteMode = WriteMode.CREATE_ONLY) -> Project:
        detail = f"Project exists with same name: {project.name}"
        try:
            self._write_project(project, mode, detail)
        except Conflict:
            self._raise_missing("put_project", (UserRecord, project.owner_id))
            raise
        return project

    def _write_project(self, project: Project, mode: WriteMode, detail: str):
        with self._transaction("put_project", detail) as session:
            if mode is WriteMode.CREATE_ONLY:
                session.add(ProjectRecord(
                    id=project.id,
                    owner_id=project.owner_id,
                    name=project.name,
                    created_at=project.created_at,
                    modified_at=project.modified_at,
                ))
                session.flush()
            else:
                result = session.execute(
                    update(ProjectRecord)
                    .where(ProjectRecord.id == project.id, ProjectRecord.owner_id == project.owner_id)
                    .values(name=project.name, modified_at=project.modified_at)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise NotFound("Project not found")

    def delete_project(self, project_id: str) -> None:
        detail = "Can not delete a project while time tracking is in progress"
        with self._transaction("delete_project", detail) as session:
            if session.get(ProjectRecord, project_id) is None:
                raise NotFound("Project not found")
            tracking = session.execute(
                select(TimeEntryRecord.id)
                .where(TimeEntryRecord.project_id == project_id, TimeEntryRecord.open_key.is_not(None))
                .limit(1)
            ).first()
            if tracking is not None:
                raise Conflict(detail)
            session.execute(
                delete(TimeEntryRecord)
                .where(TimeEntryRecord.project_id == project_id, TimeEntryRecord.open_key.is_(None))
                .execution_options(synchronize_session=False)
            )
            # An entry opened concurrently still references the project and fails this delete
            session.execute(
                delete(ProjectRecord)
                .where(ProjectRecord.id == project_id)
                .execution_options(synchronize_session=False)
            )

    # Time entries

    def get_open_time_entry(self, user_id: str, project_id: str) -> TimeEntry:
        with self._transaction("get_open_time_entry") as session:
            record = session.execute(
                select(TimeEntryRecord).where(TimeEntryRecord.open_key == open_key_for(user_id, project_id))
            ).scalar_one_or_none()
            if record is None:
                raise NotFound("No open time entry")
            return _to_entry(record)

    def create_open_time_entry(self, entry: TimeEntry) -> TimeEntry:
        if not entry.is_open:
            raise InternalError(f"Time entry {entry.id} is not open")
        try:
            with self._transaction("create_open_time_entry", "Time tracking is already in progress") as session:
                session.add(TimeEntryRecord(
                    id=entry.id,
                    user_id=entry.user_id,
                    project_id=entry.project_id,
                    started_at=entry.started_at,
                    comment=entry.comment,
                    open_key=open_key_for(entry.user_id, entry.project_id),
                ))
                session.flush()
        except Conflict:
            self._raise_missing(
                "create_open_time_entry", (ProjectRecord, entry.project_id), (UserRecord, entry.user_id)
            )
            raise
        return entry

    def get_time_entry(self, entry_id: str) -> TimeEntry:
        with self._transaction("get_time_entry") as session:
            record = session.get(TimeEntryRecord, entry_id)
            if record is None:
                raise NotFound("Time entry not found")
            return _to_entry(record)

    def delete_time_entry(self, entry_id: str) -> TimeEntry:
        with self._transaction("delete_time_entry") as session:
            record = session.get(TimeEntryRecord, entry_id)
            if record is None:
                raise NotFound("Time entry not found")
            entry = _to_entry(record)
            session.execute(
                delete(TimeEntryRecord)
                .where(TimeEntryRecord.id == entry_id)
                .execution_options(synchronize_session=False)
            )
            return entry

    def close_time_entry(self, entry_id: str, stopped_at: datetime, duration: timedelta) -> TimeEntry:
        with self._transaction("close_time_entry") as session:
            result = session.execute(
                update(TimeEntryRecord)
                .where(
                    TimeEntryRecord.id == entry_id,
                    TimeEntryRecord.stopped_at.is_(None),
                    TimeEntryRecord.open_key.is_not(None),
                )
                .values(stopped_at=stopped_at, duration=duration, open_key=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise Conflict(f"Time entry {entry_id} is no longer open")
            entry = _to_entry(session.get(TimeEntryRecord, entry_id))
            if not isinstance(entry.state, ClosedState):
                raise InternalError(f"Time entry {entry_id} did not close")
            return entry

    def list_time_entries(self, entry_filter: TimeEntryFilter) -> TimeEntrySequence:
        return TimeEntrySequence(self._store, entry_filter)
