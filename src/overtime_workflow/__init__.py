"""Overtime approval workflow, revision ledger, balances and yearly leave accrual."""

__version__ = "0.1.0"
