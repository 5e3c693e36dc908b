# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from kakeibo.models.user import User
from kakeibo.models.category import Category
from kakeibo.models.group import Group, GroupMember, GroupBudget
from kakeibo.models.salary import Salary
from kakeibo.models.budget import Budget, BudgetCategory
from kakeibo.models.transaction import Transaction
from kakeibo.models.salary_addition import SalaryAddition
from kakeibo.models.invitation import Invitation

__all__ = [
    "User",
    "Category",
    "Group",
    "GroupMember",
    "GroupBudget",
    "Salary",
    "Budget",
    "BudgetCategory",
    "Transaction",
    "SalaryAddition",
    "Invitation",
]
