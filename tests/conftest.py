"""
Shared fixtures for the budget reporting tests.

The snapshot models a small household ledger in USD:

Expense
    Housing (exp-home)            own budget 1000/month, rent 1000
        Utilities (exp-util)      one-time 200 for 2024-03, 50 EUR bill
            Electricity (exp-power)  recurring 100/month in 2024, 120 bill
    Food (exp-food)               recurring 400/month, assorted transactions
Income
    Salary (inc-salary)           recurring 5000/month, 5000 paid
        Bonus (inc-bonus)         one-time 1000 EUR for 2024-03, 900 EUR paid
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from budgeting import BudgetReportEngine
from models import (
    Budget,
    Category,
    CategoryType,
    DateRange,
    ExchangeRate,
    RecordStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)


@pytest.fixture
def make_transaction():
    """Factory for transactions with sensible defaults."""

    def _make(
        category_id="exp-food",
        amount="10",
        currency="USD",
        type=TransactionType.EXPENSE,
        status=TransactionStatus.CLEARED,
        on=date(2024, 3, 15),
        created_at=None,
        deleted_at=None,
        id=None,
        description="",
    ):
        return Transaction(
            category_id=category_id,
            account_id="acct-1",
            amount=Decimal(amount),
            currency=currency,
            type=type,
            status=status,
            date=on,
            created_at=created_at,
            deleted_at=deleted_at,
            id=id,
            description=description,
        )

    return _make


@pytest.fixture
def make_budget():
    """Factory for budgets with sensible defaults."""

    def _make(
        category_id="exp-food",
        amount="100",
        currency="USD",
        recurring=False,
        month=None,
        start_month=None,
        end_month=None,
        status=RecordStatus.ACTIVE,
    ):
        return Budget(
            category_id=category_id,
            amount=Decimal(amount),
            currency=currency,
            status=status,
            recurring=recurring,
            start_month=start_month,
            end_month=end_month,
            month=month,
        )

    return _make


@pytest.fixture
def categories():
    """Three-level expense hierarchy plus a two-level income hierarchy."""
    return [
        Category(id="exp-home", name="Housing", type=CategoryType.EXPENSE),
        Category(id="exp-util", name="Utilities", type=CategoryType.EXPENSE, parent_id="exp-home"),
        Category(id="exp-power", name="Electricity", type=CategoryType.EXPENSE, parent_id="exp-util"),
        Category(id="exp-food", name="Food", type=CategoryType.EXPENSE),
        Category(
            id="exp-travel",
            name="Travel",
            type=CategoryType.EXPENSE,
            status=RecordStatus.INACTIVE,
        ),
        Category(id="inc-salary", name="Salary", type=CategoryType.INCOME),
        Category(id="inc-bonus", name="Bonus", type=CategoryType.INCOME, parent_id="inc-salary"),
    ]


@pytest.fixture
def budgets(make_budget):
    return [
        make_budget("exp-home", "1000", recurring=True, start_month=date(2024, 1, 1)),
        make_budget("exp-util", "200", month=date(2024, 3, 1)),
        make_budget(
            "exp-power",
            "100",
            recurring=True,
            start_month=date(2024, 1, 1),
            end_month=date(2024, 12, 1),
        ),
        make_budget("exp-food", "400", recurring=True, start_month=date(2024, 1, 1)),
        make_budget("exp-food", "999", recurring=True, start_month=date(2024, 1, 1), status=RecordStatus.INACTIVE),
        make_budget("inc-salary", "5000", recurring=True, start_month=date(2023, 6, 1)),
        make_budget("inc-bonus", "1000", currency="EUR", month=date(2024, 3, 1)),
    ]


@pytest.fixture
def transactions(make_transaction):
    return [
        make_transaction("exp-home", "1000", on=date(2024, 3, 1), id="t-rent", description="Rent"),
        make_transaction("exp-util", "50", currency="EUR", on=date(2024, 3, 10), id="t-water"),
        make_transaction("exp-power", "120", on=date(2024, 3, 15), id="t-power"),
        make_transaction("exp-food", "-150", on=date(2024, 3, 5), id="t-groceries"),
        make_transaction(
            "exp-food",
            "30",
            on=date(2024, 3, 6),
            status=TransactionStatus.CANCELLED,
            id="t-cancelled",
        ),
        make_transaction(
            "exp-food",
            "40",
            on=date(2024, 3, 7),
            deleted_at=datetime(2024, 3, 8, 9, 0),
            id="t-deleted",
        ),
        make_transaction("exp-food", "25", type=TransactionType.TRANSFER_OUT, on=date(2024, 3, 20), id="t-transfer"),
        make_transaction("exp-food", "60", on=date(2024, 4, 2), id="t-april"),
        make_transaction("inc-salary", "5000", type=TransactionType.INCOME, on=date(2024, 3, 31), id="t-salary"),
        make_transaction("inc-salary", "300", type=TransactionType.TRANSFER_IN, on=date(2024, 3, 12), id="t-in"),
        make_transaction(
            "inc-bonus",
            "900",
            currency="EUR",
            type=TransactionType.INCOME,
            on=date(2024, 3, 25),
            id="t-bonus",
        ),
    ]


@pytest.fixture
def exchange_rates():
    """EUR->USD has an older and a newer rate; GBP is only reachable in reverse."""
    return [
        ExchangeRate("EUR", "USD", Decimal("1.10"), date(2024, 1, 1)),
        ExchangeRate("EUR", "USD", Decimal("1.08"), date(2024, 3, 1)),
        ExchangeRate("USD", "GBP", Decimal("0.8"), date(2024, 2, 1)),
    ]


@pytest.fixture
def engine(categories, budgets, transactions, exchange_rates):
    return BudgetReportEngine(
        categories=categories,
        budgets=budgets,
        transactions=transactions,
        base_currency="USD",
        exchange_rates=exchange_rates,
    )


@pytest.fixture
def march_2024():
    return DateRange(start=date(2024, 3, 1), end=date(2024, 3, 31))


CATEGORIES_CSV = """category_id,name,type,parent_category_id,status
exp-home,Housing,Expense,,Active
exp-util,Utilities,Expense,exp-home,Active
exp-power,Electricity,Expense,exp-util,Active
exp-food,Food,Expense,,Active
exp-travel,Travel,Expense,,Archived
inc-salary,Salary,Income,,Active
inc-bonus,Bonus,Income,inc-salary,Active
"""

BUDGETS_CSV = """budget_id,category_id,amount,currency,status,recurring,start_month,end_month,month
b-home,exp-home,1000,USD,Active,true,2024-01,,
b-util,exp-util,200,USD,Active,false,,,2024-03
b-power,exp-power,100,USD,Active,true,2024-01,2024-12,
b-food,exp-food,400,USD,Active,true,2024-01,,
b-food-old,exp-food,999,USD,Inactive,true,2024-01,,
b-salary,inc-salary,5000,USD,Active,true,2023-06,,
b-bonus,inc-bonus,1000,EUR,Active,false,,,2024-03-01
"""

TRANSACTIONS_CSV = """transaction_id,category_id,account_id,amount,currency,type,status,date,created_at,deleted_at,description
t-rent,exp-home,acct-1,-1000,USD,Expense,Cleared,2024-03-01,,,Rent
t-water,exp-util,acct-1,-50,EUR,Expense,Cleared,2024-03-10,,,Water bill
t-power,exp-power,acct-1,-120,USD,Expense,Reconciled,2024-03-15,,,Power bill
t-groceries,exp-food,acct-1,-150,USD,Expense,Cleared,2024-03-05,,,Groceries
t-cancelled,exp-food,acct-1,-30,USD,Expense,Cancelled,2024-03-06,,,Cancelled order
t-deleted,exp-food,acct-1,-40,USD,Expense,Cleared,2024-03-07,,2024-03-08 09:00:00,Deleted entry
t-transfer,exp-food,acct-1,-25,USD,Transfer Out,Cleared,2024-03-20,,,Meal kit account
t-april,exp-food,acct-1,-60,USD,Expense,Cleared,2024-04-02,,,April groceries
t-salary,inc-salary,acct-1,5000,USD,Income,Cleared,2024-03-31,,,Payroll
t-in,inc-salary,acct-1,300,USD,Transfer In,Cleared,2024-03-12,,,From savings
t-bonus,inc-bonus,acct-1,900,EUR,Income,Cleared,2024-03-25,,,Bonus
"""

EXCHANGE_RATES_CSV = """from_currency,to_currency,rate,date
EUR,USD,1.10,2024-01-01
EUR,USD,1.08,2024-03-01
USD,GBP,0.8,2024-02-01
"""

SETTINGS_CSV = """setting_key,setting_value
BaseCurrency,USD
"""


@pytest.fixture
def snapshot_dir(tmp_path):
    """Directory of CSV exports holding the same household ledger as the model fixtures."""
    directory = tmp_path / "exports"
    directory.mkdir()
    (directory / "categories.csv").write_text(CATEGORIES_CSV, encoding="utf-8")
    (directory / "budgets.csv").write_text(BUDGETS_CSV, encoding="utf-8")
    (directory / "transactions.csv").write_text(TRANSACTIONS_CSV, encoding="utf-8")
    (directory / "exchange_rates.csv").write_text(EXCHANGE_RATES_CSV, encoding="utf-8")
    (directory / "settings.csv").write_text(SETTINGS_CSV, encoding="utf-8")
    return directory
