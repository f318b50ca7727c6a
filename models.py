"""
Domain models for budget-vs-actual reporting.

These are plain, immutable snapshots of the records supplied by the store
(categories, budgets, transactions, exchange rates) plus the result types
produced by the aggregation engine. Nothing here performs I/O.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

ZERO = Decimal("0")


class CategoryType(enum.Enum):
    """Enumeration of category (and report section) types."""
    INCOME = "Income"
    EXPENSE = "Expense"


class RecordStatus(enum.Enum):
    """Lifecycle status for categories and budgets."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class TransactionType(enum.Enum):
    """Enumeration of transaction types."""
    INCOME = "Income"
    EXPENSE = "Expense"
    TRANSFER = "Transfer"
    TRANSFER_IN = "Transfer In"
    TRANSFER_OUT = "Transfer Out"


class TransactionStatus(enum.Enum):
    """Enumeration of transaction statuses."""
    PENDING = "Pending"
    CLEARED = "Cleared"
    RECONCILED = "Reconciled"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Category:
    """
    A budgeting category.

    Attributes:
        id: Category identifier
        name: Display name
        type: Income or Expense
        parent_id: Identifier of the parent category, if any
        status: Active or Inactive
    """
    id: str
    name: str
    type: CategoryType
    parent_id: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE


@dataclass
class CategoryNode:
    """
    A category with its attached child nodes.

    Built fresh by the tree builder for each aggregation call.
    """
    category: Category
    children: List["CategoryNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.category.id

    @property
    def name(self) -> str:
        return self.category.name

    @property
    def type(self) -> CategoryType:
        return self.category.type

    def walk(self) -> Iterator["CategoryNode"]:
        """Yield this node and every descendant node, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class Budget:
    """
    A budget amount assigned to a category.

    Recurring budgets apply to every month between start_month and end_month
    (either bound may be open). One-time budgets apply to ``month`` only.

    Attributes:
        category_id: Category the budget belongs to
        amount: Budgeted amount per applicable month
        currency: ISO 4217 currency code (base currency when empty)
        status: Active or Inactive
        recurring: Whether the budget repeats monthly
        start_month: First month of a recurring budget
        end_month: Last month of a recurring budget
        month: The single month of a one-time budget
        id: Optional budget identifier
    """
    category_id: str
    amount: Decimal
    currency: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE
    recurring: bool = False
    start_month: Optional[date] = None
    end_month: Optional[date] = None
    month: Optional[date] = None
    id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE


@dataclass(frozen=True)
class Transaction:
    """
    A ledger transaction as supplied by the store (soft-deleted rows included).

    Attributes:
        category_id: Category of the transaction (None for some transfers)
        account_id: Account the transaction belongs to
        amount: Signed amount; the aggregator uses its absolute value
        currency: ISO 4217 currency code (base currency when empty)
        type: Income, Expense or one of the transfer types
        status: Pending, Cleared, Reconciled or Cancelled
        date: Transaction date
        created_at: Creation timestamp, used to order same-day transactions
        deleted_at: Soft-deletion timestamp
        id: Optional transaction identifier
        description: Optional free-text description
    """
    category_id: Optional[str]
    account_id: Optional[str]
    amount: Decimal
    currency: Optional[str]
    type: TransactionType
    status: TransactionStatus
    date: date
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    id: Optional[str] = None
    description: str = ""

    @property
    def is_excluded(self) -> bool:
        """Cancelled and soft-deleted transactions never count toward any total."""
        return self.status == TransactionStatus.CANCELLED or self.deleted_at is not None


@dataclass(frozen=True)
class ExchangeRate:
    """A conversion rate from one currency into another, optionally dated."""
    from_currency: str
    to_currency: str
    rate: Decimal
    date: Optional[date] = None


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive date range aligned to whole months.

    Attributes:
        start: First day of the first month
        end: Last day of the last month
    """
    start: date
    end: date

    def contains(self, value: date) -> bool:
        if isinstance(value, datetime):
            value = value.date()
        return self.start <= value <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class CurrencyAmounts:
    """
    Per-currency running totals with zero-initialised lookups.

    Currency codes are normalised to upper case so that ``usd`` and ``USD``
    accumulate into the same bucket.
    """

    def __init__(self, amounts: Optional[Dict[str, Decimal]] = None):
        self._amounts: Dict[str, Decimal] = {}
        for currency, amount in (amounts or {}).items():
            self.add(currency, amount)

    @staticmethod
    def _key(currency: str) -> str:
        return currency.strip().upper()

    def add(self, currency: str, amount: Decimal) -> None:
        key = self._key(currency)
        self._amounts[key] = self._amounts.get(key, ZERO) + amount

    def merge(self, other: "CurrencyAmounts") -> None:
        """Add every amount from ``other`` into this map."""
        for currency, amount in other.items():
            self.add(currency, amount)

    def minus(self, other: "CurrencyAmounts") -> "CurrencyAmounts":
        """Return ``self - other`` over the union of both maps' currencies."""
        result = CurrencyAmounts()
        for currency in sorted(set(self.currencies()) | set(other.currencies())):
            result.add(currency, self[currency] - other[currency])
        return result

    def positive_currencies(self) -> List[str]:
        """Currencies whose recorded amount is strictly positive."""
        return sorted(c for c, amount in self._amounts.items() if amount > 0)

    def currencies(self) -> List[str]:
        return sorted(self._amounts)

    def items(self) -> Iterable[Tuple[str, Decimal]]:
        return sorted(self._amounts.items())

    def total(self) -> Decimal:
        return sum(self._amounts.values(), ZERO)

    def copy(self) -> "CurrencyAmounts":
        return CurrencyAmounts(dict(self._amounts))

    def to_dict(self) -> Dict[str, Decimal]:
        return dict(self.items())

    def __getitem__(self, currency: str) -> Decimal:
        return self._amounts.get(self._key(currency), ZERO)

    def __contains__(self, currency: object) -> bool:
        return isinstance(currency, str) and self._key(currency) in self._amounts

    def __len__(self) -> int:
        return len(self._amounts)

    def __bool__(self) -> bool:
        return bool(self._amounts)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CurrencyAmounts):
            return self.to_dict() == other.to_dict()
        if isinstance(other, dict):
            return self.to_dict() == CurrencyAmounts(other).to_dict()
        return NotImplemented

    def __repr__(self) -> str:
        return f"CurrencyAmounts({self.to_dict()!r})"


@dataclass
class BudgetEvaluation:
    """Result of evaluating budgets for a set of categories over a date range."""
    amount: Decimal = ZERO
    currencies: FrozenSet[str] = frozenset()
    original_amounts_by_currency: CurrencyAmounts = field(default_factory=CurrencyAmounts)

    @property
    def is_mixed(self) -> bool:
        return len(self.currencies) > 1


@dataclass
class ActualEvaluation:
    """Result of summing matching transactions for a set of categories."""
    amount: Decimal = ZERO
    currencies: FrozenSet[str] = frozenset()
    transactions: List[Transaction] = field(default_factory=list)
    original_amounts_by_currency: CurrencyAmounts = field(default_factory=CurrencyAmounts)

    @property
    def is_mixed(self) -> bool:
        return len(self.currencies) > 1


@dataclass
class AggregateResult:
    """
    Budget-vs-actual figures for one category row or one report section.

    Attributes:
        budget: Budgeted amount in base currency
        actual: Actual amount in base currency
        difference: budget - actual
        variance: (actual - budget) / budget * 100, or None when budget is 0
        currencies: Every currency seen while aggregating
        is_mixed: More than one currency has a strictly positive original amount
        budget_original_by_currency: Unconverted budget totals per currency
        actual_original_by_currency: Unconverted actual totals per currency
        difference_original_by_currency: Per-currency budget minus actual
    """
    budget: Decimal
    actual: Decimal
    difference: Decimal
    variance: Optional[Decimal]
    currencies: FrozenSet[str]
    is_mixed: bool
    budget_original_by_currency: CurrencyAmounts
    actual_original_by_currency: CurrencyAmounts
    difference_original_by_currency: CurrencyAmounts

    @property
    def has_data(self) -> bool:
        return self.budget > 0 or self.actual > 0


@dataclass
class ReportRow:
    """One displayed category row with its nested child rows."""
    category: CategoryNode
    totals: AggregateResult
    children: List["ReportRow"] = field(default_factory=list)

    @property
    def category_id(self) -> str:
        return self.category.id

    def walk(self, depth: int = 0) -> Iterator[Tuple[int, "ReportRow"]]:
        """Yield ``(depth, row)`` for this row and its descendants, depth first."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)


@dataclass(frozen=True)
class NetSummary:
    """Planned vs actual savings derived from the Income and Expense totals."""
    planned_savings: Decimal
    actual_savings: Decimal


@dataclass
class BudgetReport:
    """Both report sections, their totals and the net summary for one period."""
    date_range: DateRange
    base_currency: str
    income_rows: List[ReportRow]
    expense_rows: List[ReportRow]
    income_totals: AggregateResult
    expense_totals: AggregateResult
    net_summary: NetSummary


@dataclass
class ReportSnapshot:
    """
    The in-memory inputs of one aggregation call, as loaded from a source.

    Attributes:
        categories: Full category list (inactive categories included)
        budgets: Budget list (the engine evaluates Active budgets only)
        transactions: Transaction list (soft-deleted rows included)
        exchange_rates: Exchange-rate table
        base_currency: Currency every total is normalised into
    """
    categories: List[Category] = field(default_factory=list)
    budgets: List[Budget] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    exchange_rates: List[ExchangeRate] = field(default_factory=list)
    base_currency: str = "USD"
