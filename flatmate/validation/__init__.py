"""
Validation Package

Two-stage (schema, then semantic) validation of workflow inputs.
"""

from flatmate.validation.validator import (
    BoardValidator,
    ChoreValidator,
    ExpenseValidator,
    FitnessValidator,
    GroceryValidator,
    MemberValidator,
    get_user_friendly_summary,
    issues_from_validation_error,
    parse_input,
)

__all__ = [
    "BoardValidator",
    "ChoreValidator",
    "ExpenseValidator",
    "FitnessValidator",
    "GroceryValidator",
    "MemberValidator",
    "get_user_friendly_summary",
    "issues_from_validation_error",
    "parse_input",
]
