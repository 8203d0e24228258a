"""
Data Models Package

This package contains all Pydantic models used in Flatmate.
All data flowing through the system must conform to these schemas.
"""

from flatmate.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from flatmate.models.board import (
    DELETED_MESSAGE_PLACEHOLDER,
    ChatMessage,
    CreateNoteInput,
    CreateReminderInput,
    EditMessageInput,
    MessageQuery,
    Note,
    NoteType,
    Reminder,
    SendMessageInput,
    UpdateNoteInput,
    UpdateReminderInput,
)
from flatmate.models.chores import (
    Cadence,
    Chore,
    ChoreAssignment,
    CreateAssignmentInput,
    CreateChoreInput,
    OverrideAssignmentInput,
    RotationResult,
    UpdateChoreInput,
)
from flatmate.models.common import CENT, to_money, utcnow
from flatmate.models.fitness import (
    CreateGoalInput,
    FitnessGoal,
    GoalMetric,
    GoalPeriod,
    GoalProgress,
    GymSession,
    LogSessionInput,
    SessionType,
    UpdateGoalInput,
    UpdateSessionInput,
)
from flatmate.models.groceries import (
    AddGroceryInput,
    ContributionFilters,
    ContributionTotal,
    GroceryItem,
    MergeGroceriesInput,
    UpdateGroceryInput,
)
from flatmate.models.household import (
    Balance,
    CreateExpenseInput,
    CreateMemberInput,
    Expense,
    ExpenseCategory,
    ExpenseFilters,
    ExpenseParticipant,
    Member,
    NetBalance,
    SettleExpenseInput,
    Settlement,
    SplitMode,
    UpdateExpenseInput,
    UpdateMemberInput,
)
from flatmate.models.results import (
    ActionResult,
    AssignmentResult,
    BalancesResult,
    ChoreResult,
    ContributionsResult,
    ErrorCode,
    ExpenseResult,
    GoalProgressResult,
    GoalResult,
    GroceryResult,
    GymSessionResult,
    LockStatus,
    MemberResult,
    MergeResult,
    MessageResult,
    NoteResult,
    PinResult,
    ReminderResult,
    RotationOutcome,
    ValidationIssue,
    ValidationResult,
)
from flatmate.models.security import (
    ChangePinInput,
    HouseholdSettings,
    PinHashRecord,
    SetupPinInput,
    VerifyPinInput,
)

__all__ = [
    # Household models
    "Balance",
    "CreateExpenseInput",
    "CreateMemberInput",
    "Expense",
    "ExpenseCategory",
    "ExpenseFilters",
    "ExpenseParticipant",
    "Member",
    "NetBalance",
    "SettleExpenseInput",
    "Settlement",
    "SplitMode",
    "UpdateExpenseInput",
    "UpdateMemberInput",
    # Chore models
    "Cadence",
    "Chore",
    "ChoreAssignment",
    "CreateAssignmentInput",
    "CreateChoreInput",
    "OverrideAssignmentInput",
    "RotationResult",
    "UpdateChoreInput",
    # Grocery models
    "AddGroceryInput",
    "ContributionFilters",
    "ContributionTotal",
    "GroceryItem",
    "MergeGroceriesInput",
    "UpdateGroceryInput",
    # Fitness models
    "CreateGoalInput",
    "FitnessGoal",
    "GoalMetric",
    "GoalPeriod",
    "GoalProgress",
    "GymSession",
    "LogSessionInput",
    "SessionType",
    "UpdateGoalInput",
    "UpdateSessionInput",
    # Board models
    "DELETED_MESSAGE_PLACEHOLDER",
    "ChatMessage",
    "CreateNoteInput",
    "CreateReminderInput",
    "EditMessageInput",
    "MessageQuery",
    "Note",
    "NoteType",
    "Reminder",
    "SendMessageInput",
    "UpdateNoteInput",
    "UpdateReminderInput",
    # Security models
    "ChangePinInput",
    "HouseholdSettings",
    "PinHashRecord",
    "SetupPinInput",
    "VerifyPinInput",
    # Results
    "ActionResult",
    "AssignmentResult",
    "BalancesResult",
    "ChoreResult",
    "ContributionsResult",
    "ErrorCode",
    "ExpenseResult",
    "GoalProgressResult",
    "GoalResult",
    "GroceryResult",
    "GymSessionResult",
    "LockStatus",
    "MemberResult",
    "MergeResult",
    "MessageResult",
    "NoteResult",
    "PinResult",
    "ReminderResult",
    "RotationOutcome",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Helpers
    "CENT",
    "to_money",
    "utcnow",
]
