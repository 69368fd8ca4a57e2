"""
Data Models Package

This package contains all Pydantic models used by the Cash-Flow Planner.
All data flowing through the engine must conform to these schemas.
"""

from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from cashflow.models.client import (
    MONTH_END_CODE,
    BillingDay,
    Client,
    InvalidPaymentTermsError,
    find_client,
)
from cashflow.models.common import CalendarDate, Money, TransactionType
from cashflow.models.financials import (
    CalendarEntry,
    DailyCashFlow,
    HealthStatus,
    ProjectFinancials,
    ViewMode,
)
from cashflow.models.project import Project, ProjectColor, ProjectStatus
from cashflow.models.recurring import Frequency, InvalidRecurrenceError, RecurringMaster
from cashflow.models.results import (
    MoveProjectResult,
    RecalculationResult,
    SkippedTransaction,
    SkipReason,
    StagedUpdate,
)
from cashflow.models.transaction import Transaction

__all__ = [
    # Entities
    "BillingDay",
    "Client",
    "Frequency",
    "MONTH_END_CODE",
    "Project",
    "ProjectColor",
    "ProjectStatus",
    "RecurringMaster",
    "Transaction",
    "TransactionType",
    # Field types
    "CalendarDate",
    "Money",
    # Errors
    "InvalidPaymentTermsError",
    "InvalidRecurrenceError",
    # Results
    "CalendarEntry",
    "DailyCashFlow",
    "HealthStatus",
    "MoveProjectResult",
    "ProjectFinancials",
    "RecalculationResult",
    "SkippedTransaction",
    "SkipReason",
    "StagedUpdate",
    "ViewMode",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Lookups
    "find_client",
]
