"""
SQL Storage Implementation

DESIGN DECISION: A relational database behind SQLAlchemy's async ORM is
the single transactional store because:
1. Batch merges need real BEGIN/COMMIT/ROLLBACK
2. Row locks serialize concurrent syncs of the same owner
3. Foreign keys and uniqueness are enforced by the database, not by us

TRADEOFFS:
- SQLite (tests, single-device development) ignores FOR UPDATE; its
  single-writer lock gives the same serialization at coarser grain
- SQLite has no exact decimal type, so amounts are stored there as
  canonical decimal text rather than REAL

The implementation follows the abstract interface, so the coordinator
and aggregator never import SQLAlchemy.
"""

from contextlib import asynccontextmanager
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog
from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    delete,
    event,
    or_,
    select,
    update,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finsync.config import DatabaseSettings, get_settings
from finsync.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    Category,
    EntityKind,
    Theme,
    Transaction,
    TransactionCandidate,
    TransactionFilter,
    TransactionSource,
    TransactionType,
    User,
    UserSettings,
    utcnow,
)
from finsync.models.sync import SyncAttempt, SyncStatus
from finsync.services.storage.interface import (
    AuditStorageInterface,
    AuthorizationError,
    ConnectionError,
    DuplicateError,
    EntityStoreInterface,
    NotFoundError,
    StorageError,
    StoreSession,
    not_found_message,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# COLUMN TYPES
# =============================================================================

class ExactDecimal(TypeDecorator):
    """
    Decimal column that never passes through binary floating point.

    NUMERIC on backends with a native decimal type; canonical decimal
    text on SQLite, whose NUMERIC affinity would store REAL.
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(40))
        return dialect.type_descriptor(Numeric(precision=18, scale=2, asdecimal=True))

    def process_bind_param(self, value: Optional[Decimal], dialect: Dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect: Dialect) -> Optional[Decimal]:
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(value)


# =============================================================================
# TABLES
# =============================================================================

class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    auth_provider: Mapped[str] = mapped_column(String(50), nullable=False, default="email")
    sync_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class UserSettingsRow(Base):
    __tablename__ = "settings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    theme: Mapped[Theme] = mapped_column(SAEnum(Theme, native_enum=False, length=8), nullable=False)
    notification_preferences: Mapped[dict] = mapped_column(JSON, nullable=False)
    sync_options: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CategoryRow(Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
        Index("idx_categories_user_id", "user_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TransactionRow(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("idx_transactions_user_id", "user_id"),
        Index("idx_transactions_date", "date"),
        Index("idx_transactions_category_id", "category_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, native_enum=False, length=16), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(ExactDecimal, nullable=False)
    category_id: Mapped[UUID] = mapped_column(ForeignKey("categories.id"), nullable=False)
    sub_category_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    attachment_url: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[TransactionSource] = mapped_column(
        SAEnum(TransactionSource, native_enum=False, length=16), nullable=False
    )
    sms_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class BudgetRow(Base):
    __tablename__ = "budgets"
    __table_args__ = (
        Index("idx_budgets_user_id", "user_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    category_id: Mapped[UUID] = mapped_column(ForeignKey("categories.id"), nullable=False)
    monthly_limit: Mapped[Decimal] = mapped_column(ExactDecimal, nullable=False)
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date_type]] = mapped_column(Date)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SyncAttemptRow(Base):
    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("idx_sync_logs_user_id", "user_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    scope: Mapped[str] = mapped_column(String(32), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SyncStatus] = mapped_column(
        SAEnum(SyncStatus, native_enum=False, length=16), nullable=False
    )
    conflict_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AuditEventRow(Base):
    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_events_correlation_id", "correlation_id"),
        Index("idx_audit_events_entity", "entity_type", "entity_id"),
    )

    event_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    user_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    entity_type: Mapped[Optional[str]] = mapped_column(String(32))
    entity_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    correlation_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[dict] = mapped_column(JSON, nullable=False)
    error_code: Mapped[Optional[str]] = mapped_column(String(100))
    error_message: Mapped[Optional[str]] = mapped_column(Text)


_ROWS: dict[EntityKind, type[TransactionRow] | type[BudgetRow]] = {
    EntityKind.TRANSACTION: TransactionRow,
    EntityKind.BUDGET: BudgetRow,
}

_MODELS: dict[EntityKind, type[Transaction] | type[Budget]] = {
    EntityKind.TRANSACTION: Transaction,
    EntityKind.BUDGET: Budget,
}


# =============================================================================
# ENGINE
# =============================================================================

def create_engine_from_settings(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Build the async engine.

    On SQLite, the driver's own transaction handling is switched off and
    every transaction starts with BEGIN IMMEDIATE, which takes the
    database write lock up front. Units of work therefore run one at a
    time, reads included, the same as FOR UPDATE on the owner row does
    elsewhere. Foreign keys are turned on per connection.
    """
    settings = settings or get_settings().database
    engine = create_async_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=settings.pool_pre_ping,
    )

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _configure_sqlite_connection(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


# =============================================================================
# UNIT OF WORK
# =============================================================================

class SqlStoreSession(StoreSession):
    """StoreSession bound to one AsyncSession inside one transaction."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # -------------------------------------------------------------------------
    # Owners and versions
    # -------------------------------------------------------------------------

    async def lock_owner(self, owner_id: UUID) -> User:
        result = await self._session.execute(
            select(UserRow)
            .where(UserRow.id == owner_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(not_found_message("user", owner_id))
        return User.model_validate(row)

    async def next_version(self, owner_id: UUID) -> int:
        # Incremented by the database, never from a value read earlier
        result = await self._session.execute(
            update(UserRow)
            .where(UserRow.id == owner_id)
            .values(sync_sequence=UserRow.sync_sequence + 1)
            .returning(UserRow.sync_sequence)
            .execution_options(synchronize_session=False)
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise NotFoundError(not_found_message("user", owner_id))
        return version

    async def add_user(self, user: User) -> UserSettings:
        self._session.add(UserRow(**user.model_dump()))
        settings = UserSettings(user_id=user.id)
        self._session.add(UserSettingsRow(**settings.model_dump()))
        await self._session.flush()
        return settings

    async def get_user_settings(self, owner_id: UUID) -> UserSettings:
        result = await self._session.execute(
            select(UserSettingsRow).where(UserSettingsRow.user_id == owner_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(not_found_message("settings", owner_id))
        return UserSettings.model_validate(row)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @staticmethod
    def _visible_to(owner_id: UUID):
        return or_(CategoryRow.user_id == owner_id, CategoryRow.user_id.is_(None))

    async def add_category(self, category: Category) -> Category:
        self._session.add(CategoryRow(**category.model_dump()))
        await self._session.flush()
        return category

    async def get_category(self, owner_id: UUID, category_id: UUID) -> Category:
        result = await self._session.execute(
            select(CategoryRow).where(
                CategoryRow.id == category_id,
                self._visible_to(owner_id),
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(not_found_message("category", category_id))
        return Category.model_validate(row)

    async def visible_category_ids(
        self,
        owner_id: UUID,
        category_ids: set[UUID],
    ) -> set[UUID]:
        if not category_ids:
            return set()
        result = await self._session.execute(
            select(CategoryRow.id).where(
                CategoryRow.id.in_(category_ids),
                self._visible_to(owner_id),
            )
        )
        return set(result.scalars().all())

    async def list_categories(self, owner_id: UUID) -> list[Category]:
        result = await self._session.execute(
            select(CategoryRow)
            .where(self._visible_to(owner_id))
            .order_by(CategoryRow.order_index, CategoryRow.name)
        )
        return [Category.model_validate(row) for row in result.scalars().all()]

    # -------------------------------------------------------------------------
    # Versioned entities
    # -------------------------------------------------------------------------

    async def _owned_row(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
        for_update: bool = False,
    ):
        row_cls = _ROWS[kind]
        stmt = select(row_cls).where(row_cls.id == entity_id, row_cls.user_id == owner_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
        for_update: bool = False,
    ) -> Optional[Transaction | Budget]:
        row = await self._owned_row(kind, owner_id, entity_id, for_update)
        if row is None:
            return None
        return _MODELS[kind].model_validate(row)

    async def get_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
    ) -> Transaction | Budget:
        entity = await self.find_entity(kind, owner_id, entity_id)
        if entity is None:
            raise NotFoundError(not_found_message(kind.value, entity_id))
        return entity

    async def write_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        candidate: TransactionCandidate | BudgetCandidate,
    ) -> Transaction | Budget:
        row_cls = _ROWS[kind]
        row = await self._session.get(row_cls, candidate.id, with_for_update=True)
        if row is not None and row.user_id != owner_id:
            raise AuthorizationError(not_found_message(kind.value, candidate.id))

        version = await self.next_version(owner_id)
        now = utcnow()
        if row is None:
            row = row_cls(id=candidate.id, user_id=owner_id, created_at=now)
            self._session.add(row)
        for name, value in candidate.payload().items():
            setattr(row, name, value)
        row.version = version
        row.updated_at = now
        await self._session.flush()

        logger.debug(
            "entity_written",
            kind=kind.value,
            entity_id=str(candidate.id),
            owner_id=str(owner_id),
            version=version,
        )
        return _MODELS[kind].model_validate(row)

    async def delete_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
    ) -> None:
        row_cls = _ROWS[kind]
        result = await self._session.execute(
            delete(row_cls).where(row_cls.id == entity_id, row_cls.user_id == owner_id)
        )
        if result.rowcount == 0:
            raise NotFoundError(not_found_message(kind.value, entity_id))
        # Deletions advance the owner's counter too, so a checkpoint taken
        # before the delete is older than the owner's current state.
        await self.next_version(owner_id)

    async def changed_since(
        self,
        kind: EntityKind,
        owner_id: UUID,
        version: int,
    ) -> list[Transaction | Budget]:
        row_cls = _ROWS[kind]
        result = await self._session.execute(
            select(row_cls)
            .where(row_cls.user_id == owner_id, row_cls.version > version)
            .order_by(row_cls.version)
        )
        model = _MODELS[kind]
        return [model.model_validate(row) for row in result.scalars().all()]

    # -------------------------------------------------------------------------
    # Reads for listing and aggregation
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        owner_id: UUID,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        filters = filters or TransactionFilter()
        stmt = select(TransactionRow).where(TransactionRow.user_id == owner_id)
        if filters.from_date:
            stmt = stmt.where(TransactionRow.date >= filters.from_date)
        if filters.to_date:
            stmt = stmt.where(TransactionRow.date <= filters.to_date)
        if filters.category_ids:
            stmt = stmt.where(TransactionRow.category_id.in_(filters.category_ids))
        if filters.sources:
            stmt = stmt.where(TransactionRow.source.in_(filters.sources))
        if filters.type:
            stmt = stmt.where(TransactionRow.type == filters.type)
        stmt = (
            stmt.order_by(TransactionRow.date.desc(), TransactionRow.created_at.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        result = await self._session.execute(stmt)
        return [Transaction.model_validate(row) for row in result.scalars().all()]

    async def recent_transactions(self, owner_id: UUID, limit: int) -> list[Transaction]:
        result = await self._session.execute(
            select(TransactionRow)
            .where(TransactionRow.user_id == owner_id)
            .order_by(TransactionRow.date.desc(), TransactionRow.created_at.desc())
            .limit(limit)
        )
        return [Transaction.model_validate(row) for row in result.scalars().all()]

    async def transaction_amounts(
        self,
        owner_id: UUID,
    ) -> list[tuple[TransactionType, Decimal]]:
        result = await self._session.execute(
            select(TransactionRow.type, TransactionRow.amount)
            .where(TransactionRow.user_id == owner_id)
        )
        return [(row.type, row.amount) for row in result.all()]

    async def list_budgets_with_category(
        self,
        owner_id: UUID,
    ) -> list[tuple[Budget, str]]:
        result = await self._session.execute(
            select(BudgetRow, CategoryRow.name)
            .join(CategoryRow, CategoryRow.id == BudgetRow.category_id)
            .where(BudgetRow.user_id == owner_id)
            .order_by(CategoryRow.order_index, BudgetRow.start_date)
        )
        return [(Budget.model_validate(row), name) for row, name in result.all()]

    # -------------------------------------------------------------------------
    # Sync attempt log
    # -------------------------------------------------------------------------

    async def append_sync_attempt(self, attempt: SyncAttempt) -> SyncAttempt:
        self._session.add(SyncAttemptRow(**attempt.model_dump()))
        await self._session.flush()
        return attempt

    async def last_sync_attempt(self, owner_id: UUID) -> Optional[SyncAttempt]:
        result = await self._session.execute(
            select(SyncAttemptRow)
            .where(SyncAttemptRow.user_id == owner_id)
            .order_by(SyncAttemptRow.sequence.desc(), SyncAttemptRow.last_attempt.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return SyncAttempt.model_validate(row) if row else None


class SqlEntityStore(EntityStoreInterface):
    """
    SQLAlchemy implementation of the transactional store.

    Sessions are created per unit of work; nothing is shared between
    concurrent calls except the connection pool.
    """

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        settings: Optional[DatabaseSettings] = None,
    ):
        self._settings = settings or get_settings().database
        self._engine = engine or create_engine_from_settings(self._settings)
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[StoreSession]:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    yield SqlStoreSession(session)
        except IntegrityError as e:
            logger.warning("store_integrity_error", error=str(e.orig))
            raise DuplicateError(f"Constraint violated: {e.orig}") from e
        except OperationalError as e:
            logger.error("store_operational_error", error=str(e.orig))
            raise ConnectionError(f"Database unavailable: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error("store_error", error=str(e))
            raise StorageError(f"Storage operation failed: {e}") from e

    async def create_schema(self) -> None:
        attempts = self._settings.connect_attempts

        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        async def _create() -> None:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        try:
            await _create()
        except OperationalError as e:
            raise ConnectionError(f"Could not create schema: {e.orig}") from e
        logger.info("schema_ready", dialect=self._engine.dialect.name)

    async def close(self) -> None:
        await self._engine.dispose()


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class SqlAuditStorage(AuditStorageInterface):
    """
    SQL implementation of audit log storage.

    Writes in its own short transaction, after the audited unit of work
    has finished, so an audit failure can never roll back a sync.
    """

    def __init__(self, engine: AsyncEngine):
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    async def _insert(self, event: AuditEvent) -> None:
        async with self._sessionmaker() as session:
            async with session.begin():
                session.add(AuditEventRow(
                    event_id=event.event_id,
                    timestamp=event.timestamp,
                    event_type=event.event_type.value,
                    severity=event.severity.value,
                    user_id=event.user_id,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    correlation_id=event.correlation_id,
                    description=event.description,
                    details=event.details,
                    error_code=event.error_code,
                    error_message=event.error_message,
                ))

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            await self._insert(event)
            return True
        except SQLAlchemyError as e:
            logger.error(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    @staticmethod
    def _row_to_event(row: AuditEventRow) -> AuditEvent:
        return AuditEvent(
            event_id=row.event_id,
            timestamp=row.timestamp,
            event_type=AuditEventType(row.event_type),
            severity=AuditSeverity(row.severity),
            user_id=row.user_id,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            correlation_id=row.correlation_id,
            description=row.description,
            details=row.details or {},
            error_code=row.error_code,
            error_message=row.error_message,
        )

    async def _query(self, *criteria) -> list[AuditEvent]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(AuditEventRow)
                    .where(*criteria)
                    .order_by(AuditEventRow.timestamp)
                )
                return [self._row_to_event(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return await self._query(AuditEventRow.correlation_id == correlation_id)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return await self._query(
            AuditEventRow.entity_type == entity_type,
            AuditEventRow.entity_id == entity_id,
        )
