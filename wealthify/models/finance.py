"""
Finance Record Models

The raw records the statistics provider aggregates into a
UserStatsSnapshot. They mirror the hosted database tables
(linked_accounts, transactions, financial_goals, budgets, profiles)
but carry only the columns the achievement engine needs.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class LinkedAccount(BaseModel):
    """A bank or card account linked by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    account_name: str = "Account"
    account_type: str = "checking"
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Current balance (may be negative for credit accounts)"
    )
    is_active: bool = True


class Transaction(BaseModel):
    """A single logged income or expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    amount: Decimal
    category: str
    transaction_type: Union[TransactionType, str] = Field(
        default=TransactionType.EXPENSE,
        union_mode="left_to_right",
        description="Free text in the hosted database; only 'expense' counts as spending"
    )
    transaction_date: date = Field(default_factory=date.today)
    description: Optional[str] = None


class FinancialGoal(BaseModel):
    """A savings goal. Completed once current_amount reaches target_amount."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    goal_name: str = "Goal"
    target_amount: Decimal = Field(..., ge=0)
    current_amount: Optional[Decimal] = Field(
        default=None,
        description="Amount saved so far; null means nothing saved yet"
    )

    @property
    def is_completed(self) -> bool:
        return (self.current_amount or Decimal("0")) >= self.target_amount


class Budget(BaseModel):
    """A spending limit for one transaction category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    category: str
    limit_amount: Decimal = Field(..., ge=0)
    period: str = "monthly"


class Profile(BaseModel):
    """The user's profile row; only its creation time matters here."""

    id: str
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None
