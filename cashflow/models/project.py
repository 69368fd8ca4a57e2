"""
Project Model

A project is a piece of client work. Its end (delivery) date is the accrual
date of the income it produces, so moving the project moves the expected
payment.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from cashflow.models.common import CalendarDate, Money


PROJECT_MEMO_PREFIX = "[Project] "


class ProjectStatus(str, Enum):
    """
    Project pipeline stage.

    Income of confirmed and completed projects is firm; everything else
    is an estimate.
    """
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    LOST = "lost"

    @property
    def is_firm(self) -> bool:
        return self in (ProjectStatus.CONFIRMED, ProjectStatus.COMPLETED)


class ProjectColor(str, Enum):
    """Calendar bar colour."""
    BLUE = "blue"
    GREEN = "green"
    ORANGE = "orange"
    PURPLE = "purple"
    RED = "red"
    GRAY = "gray"


class Project(BaseModel):
    """Client work with a delivery date that drives expected income."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None
    client_id: Optional[str] = None

    title: str = Field(..., min_length=1, max_length=200)
    start_date: Optional[CalendarDate] = None
    end_date: Optional[CalendarDate] = Field(
        default=None,
        description="Delivery date; accrual date of the project income"
    )
    status: ProjectStatus = ProjectStatus.DRAFT
    color: ProjectColor = ProjectColor.BLUE
    estimated_amount: Money = Field(default=Decimal("0"), ge=0)
    memo: Optional[str] = Field(default=None, max_length=1000)

    tags: list[str] = Field(default_factory=list)
    is_important: bool = False
    progress: int = Field(default=0, ge=0, le=100)
    urls: list[str] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_dates(self) -> 'Project':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Project end date cannot be before start date")
        return self

    @property
    def income_memo(self) -> str:
        return f"{PROJECT_MEMO_PREFIX}{self.title}"
