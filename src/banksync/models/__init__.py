"""Database models."""
from banksync.models.household import Household
from banksync.models.bank_connection import BankConnection
from banksync.models.account import Account
from banksync.models.category import Category
from banksync.models.category_rule import CategoryRule
from banksync.models.budget import Budget
from banksync.models.transaction import Transaction
from banksync.models.sync_job import SyncJob

__all__ = [
    "Household",
    "BankConnection",
    "Account",
    "Category",
    "CategoryRule",
    "Budget",
    "Transaction",
    "SyncJob",
]
