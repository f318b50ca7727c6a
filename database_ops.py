"""
Database snapshot source for budget reporting.

This module maps the store's tables (categories, budgets, transactions,
exchange rates, settings) with SQLAlchemy ORM and reads them into the
immutable domain models. Reporting only reads; ``create_tables`` exists so a
fresh database (or a test database) can be prepared.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    create_engine,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from category_hierarchy import find_cyclic_categories
from data_standardization import (
    settings_to_dict,
    standardize_budget,
    standardize_category,
    standardize_exchange_rate,
    standardize_transaction,
)
from exceptions import DatabaseError, StandardizationError
from models import (
    Budget,
    Category,
    DateRange,
    ExchangeRate,
    RecordStatus,
    ReportSnapshot,
    Transaction,
)

# Configure logging
logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_CURRENCY_SETTING = "BaseCurrency"

Base = declarative_base()


class CategoryRecord(Base):
    """
    SQLAlchemy model for a budget category.

    Attributes:
        category_id: Primary key
        name: Display name
        type: "Income" or "Expense"
        parent_category_id: Parent category (None for top-level categories)
        status: "Active", "Inactive" or "Archived"
    """

    __tablename__ = "categories"

    category_id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False, index=True)
    parent_category_id = Column(String(64), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=RecordStatus.ACTIVE.value)

    def __repr__(self) -> str:
        return f"<CategoryRecord(id={self.category_id}, name='{self.name}', type={self.type})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_id": self.category_id,
            "name": self.name,
            "type": self.type,
            "parent_category_id": self.parent_category_id,
            "status": self.status,
        }


class BudgetRecord(Base):
    """
    SQLAlchemy model for a budget line.

    Recurring budgets use ``start_month``/``end_month`` (open-ended when
    None); one-time budgets use ``month``.
    """

    __tablename__ = "budgets"

    budget_id = Column(String(64), primary_key=True)
    category_id = Column(String(64), nullable=False, index=True)
    currency = Column(String(3), nullable=True)
    month = Column(Date, nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    recurring = Column(Boolean, nullable=False, default=False)
    start_month = Column(Date, nullable=True)
    end_month = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=RecordStatus.ACTIVE.value)

    def __repr__(self) -> str:
        return (
            f"<BudgetRecord(id={self.budget_id}, category={self.category_id}, "
            f"amount={self.amount} {self.currency}, recurring={self.recurring})>"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "budget_id": self.budget_id,
            "category_id": self.category_id,
            "currency": self.currency,
            "month": self.month,
            "amount": self.amount,
            "recurring": self.recurring,
            "start_month": self.start_month,
            "end_month": self.end_month,
            "status": self.status,
        }


class TransactionRecord(Base):
    """SQLAlchemy model for a ledger transaction."""

    __tablename__ = "transactions"

    transaction_id = Column(String(64), primary_key=True)
    account_id = Column(String(64), nullable=True, index=True)
    category_id = Column(String(64), nullable=True, index=True)
    date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=True)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="Cleared")
    created_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_transactions_category_date", "category_id", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<TransactionRecord(id={self.transaction_id}, date={self.date}, "
            f"amount={self.amount} {self.currency}, type={self.type})>"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "category_id": self.category_id,
            "date": self.date,
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "created_at": self.created_at,
            "deleted_at": self.deleted_at,
        }


class ExchangeRateRecord(Base):
    """SQLAlchemy model for a dated currency conversion rate."""

    __tablename__ = "exchange_rates"

    exchange_rate_id = Column(String(64), primary_key=True)
    from_currency = Column(String(3), nullable=False)
    to_currency = Column(String(3), nullable=False)
    rate = Column(Numeric(15, 6), nullable=False)
    date = Column(Date, nullable=True)

    __table_args__ = (
        Index("idx_exchange_rates_pair_date", "from_currency", "to_currency", "date"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_currency": self.from_currency,
            "to_currency": self.to_currency,
            "rate": self.rate,
            "date": self.date,
        }


class SettingRecord(Base):
    """Key/value application setting (e.g. BaseCurrency)."""

    __tablename__ = "settings"

    setting_key = Column(String(100), primary_key=True)
    setting_value = Column(Text, nullable=True)


def _standardize_rows(rows: List[Dict[str, Any]], name: str, convert: Callable[[Dict[str, Any]], T]) -> List[T]:
    """Convert raw row dictionaries, logging and skipping rows that fail."""
    records: List[T] = []
    for row in rows:
        try:
            records.append(convert(row))
        except StandardizationError as e:
            logger.warning(f"Skipping malformed {name} record: {e}")
    return records


class DatabaseManager:
    """
    Manages the database connection and reads report snapshots.

    Every read method accepts an optional session; when none is given a
    session is opened for the call and closed afterwards.
    """

    def __init__(self, connection_string: str):
        """
        Initialize the database manager.

        Args:
            connection_string: SQLAlchemy connection string (e.g., 'sqlite:///data/finance.db')

        Raises:
            DatabaseError: If the engine cannot be created
        """
        try:
            self.engine = create_engine(connection_string, echo=False)
            self.SessionLocal = sessionmaker(bind=self.engine)
            logger.info(f"Database manager initialized with connection: {connection_string}")
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseError(
                "Failed to initialize database",
                details={"connection_string": connection_string},
                original_error=e
            ) from e

    def create_tables(self) -> None:
        """
        Create all database tables if they don't exist.

        Raises:
            DatabaseError: If table creation fails
        """
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database tables created/verified successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseError("Failed to create database tables", original_error=e) from e

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            SQLAlchemy session object

        Note:
            Caller is responsible for closing the session.
        """
        return self.SessionLocal()

    def _query(self, description: str, run: Callable[[Session], T], session: Optional[Session] = None) -> T:
        close_session = False
        if session is None:
            session = self.get_session()
            close_session = True

        try:
            return run(session)
        except SQLAlchemyError as e:
            logger.error(f"Failed to {description}: {e}")
            raise DatabaseError(f"Failed to {description}", original_error=e) from e
        finally:
            if close_session:
                session.close()

    def get_all_categories(self, session: Optional[Session] = None) -> List[Category]:
        """
        Get every category regardless of status.

        Descendant expansion walks this full list so that budgets and
        transactions under an inactive subcategory still roll up.
        """
        rows = self._query(
            "load categories",
            lambda s: [record.to_dict() for record in s.query(CategoryRecord).all()],
            session
        )
        return _standardize_rows(rows, "category", standardize_category)

    def get_active_categories(self, session: Optional[Session] = None) -> List[Category]:
        """Get categories whose status is Active."""
        return [category for category in self.get_all_categories(session) if category.is_active]

    def get_active_budgets(self, session: Optional[Session] = None) -> List[Budget]:
        """Get budgets whose status is Active."""
        rows = self._query(
            "load budgets",
            lambda s: [record.to_dict() for record in s.query(BudgetRecord).all()],
            session
        )
        return [budget for budget in _standardize_rows(rows, "budget", standardize_budget) if budget.is_active]

    def get_transactions(
        self,
        date_range: Optional[DateRange] = None,
        session: Optional[Session] = None
    ) -> List[Transaction]:
        """
        Get transactions, optionally limited to an inclusive date range.

        Deleted and cancelled transactions are returned as stored; the
        aggregation engine excludes them.

        Args:
            date_range: Optional range applied to the transaction date
            session: Optional existing session (creates new one if None)

        Returns:
            List of Transaction models ordered by date
        """
        def run(s: Session) -> List[Dict[str, Any]]:
            query = s.query(TransactionRecord)
            if date_range is not None:
                query = query.filter(
                    TransactionRecord.date >= date_range.start,
                    TransactionRecord.date <= date_range.end
                )
            return [record.to_dict() for record in query.order_by(TransactionRecord.date).all()]

        rows = self._query("load transactions", run, session)
        return _standardize_rows(rows, "transaction", standardize_transaction)

    def get_exchange_rates(self, session: Optional[Session] = None) -> List[ExchangeRate]:
        """Get all stored exchange rates."""
        rows = self._query(
            "load exchange rates",
            lambda s: [record.to_dict() for record in s.query(ExchangeRateRecord).all()],
            session
        )
        return _standardize_rows(rows, "exchange rate", standardize_exchange_rate)

    def get_base_currency(self, default: str = "USD", session: Optional[Session] = None) -> str:
        """Base currency from the settings table, else ``default``."""
        rows = self._query(
            "load settings",
            lambda s: [
                {"setting_key": record.setting_key, "setting_value": record.setting_value}
                for record in s.query(SettingRecord).all()
            ],
            session
        )
        value = (settings_to_dict(rows).get(BASE_CURRENCY_SETTING) or "").strip()
        return value.upper() if value else default.upper()

    def load_snapshot(self, default_base_currency: str = "USD") -> ReportSnapshot:
        """
        Read a complete ReportSnapshot in one session.

        Args:
            default_base_currency: Used when the settings table has no BaseCurrency

        Returns:
            ReportSnapshot with all categories, active budgets, transactions and rates

        Raises:
            DatabaseError: If any query fails
        """
        session = self.get_session()
        try:
            categories = self.get_all_categories(session)
            snapshot = ReportSnapshot(
                categories=categories,
                budgets=self.get_active_budgets(session),
                transactions=self.get_transactions(session=session),
                exchange_rates=self.get_exchange_rates(session),
                base_currency=self.get_base_currency(default_base_currency, session),
            )
        finally:
            session.close()

        cyclic = find_cyclic_categories(snapshot.categories)
        if cyclic:
            logger.warning("Category hierarchy contains cycles at: %s", ", ".join(cyclic))

        logger.info(
            f"Loaded snapshot from database: {len(snapshot.categories)} categories, "
            f"{len(snapshot.budgets)} budgets, {len(snapshot.transactions)} transactions"
        )
        return snapshot

    def close(self) -> None:
        """Close the database engine connection."""
        if hasattr(self, 'engine'):
            self.engine.dispose()
            logger.info("Database connection closed")
