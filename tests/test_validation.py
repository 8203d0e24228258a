"""
Tests for the two-stage validators.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from flatmate.models import Chore, CreateMemberInput, Member, ValidationIssue, ValidationResult
from flatmate.services.storage import CollectionRepository, StorageKeys
from flatmate.validation import ChoreValidator, get_user_friendly_summary, parse_input

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def members_repo(storage, *members):
    repository = CollectionRepository(storage, StorageKeys.MEMBERS, Member)
    asyncio.run(repository.replace_all(list(members)))
    return repository


class TestParseInput:

    def test_valid_payload(self):
        parsed, issues = parse_input(CreateMemberInput, {"name": " Amy "})
        assert parsed.name == "Amy"
        assert issues == []

    def test_invalid_payload_gives_field_issues(self):
        parsed, issues = parse_input(CreateMemberInput, {"name": "", "color": "blue"})
        assert parsed is None
        assert {i.field for i in issues} == {"name", "color"}
        assert all(i.severity == "error" for i in issues)

    def test_model_validator_message_is_unprefixed(self):
        parsed, issues = parse_input(
            Chore, {"name": "Bins", "cadence": "weekly", "rotation_sequence": [uuid4()], "current_index": 1}
        )
        assert parsed is None
        assert issues[0].message == "Current index must be < rotation sequence length"


class TestChoreValidator:

    def test_duplicate_member_is_warning(self, storage):
        amy = Member(name="Amy")
        validator = ChoreValidator(members_repo(storage, amy), clock=lambda: NOW)

        result = asyncio.run(validator.validate_create(
            {"name": "Bins", "cadence": "weekly", "rotation_sequence": [amy.id, amy.id]}
        ))
        assert result.is_valid
        assert result.warnings == ["A member appears more than once in the rotation"]

    def test_assignment_due_now_is_allowed(self, storage):
        amy = Member(name="Amy")
        validator = ChoreValidator(members_repo(storage, amy), clock=lambda: NOW)
        chore = Chore(name="Bins", cadence="weekly", rotation_sequence=[amy.id])

        result = asyncio.run(validator.validate_assignment(
            chore, {"chore_id": chore.id, "assigned_to": amy.id, "due_date": NOW}
        ))
        assert result.is_valid

    def test_inactive_assignee(self, storage):
        amy = Member(name="Amy", is_active=False)
        validator = ChoreValidator(members_repo(storage, amy), clock=lambda: NOW)
        chore = Chore(name="Bins", cadence="weekly", rotation_sequence=[amy.id])

        result = asyncio.run(validator.validate_assignment(chore, {
            "chore_id": chore.id,
            "assigned_to": amy.id,
            "due_date": NOW + timedelta(days=1),
        }))
        assert not result.is_valid
        assert result.schema_valid
        assert result.field_errors == {
            "assigned_to": [f"Invalid member ID: {amy.id} or member is inactive"]
        }


class TestFriendlySummary:

    def test_all_passed(self):
        result = ValidationResult(
            subject="expense", schema_valid=True, semantic_valid=True, is_valid=True
        )
        assert get_user_friendly_summary(result) == "All checks passed."

    def test_errors_and_warnings(self):
        result = ValidationResult(
            subject="expense",
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[ValidationIssue(
                field="payer_id",
                issue_type="inactive_member",
                message="Invalid payer ID or payer is inactive",
                suggested_fix="Choose an active household member as payer",
            )],
            warnings=["Other unsettled expenses use EUR"],
        )
        assert get_user_friendly_summary(result).splitlines() == [
            "Please fix the following expense details:",
            "  - Invalid payer ID or payer is inactive",
            "    (Choose an active household member as payer)",
            "",
            "Please verify:",
            "  - Other unsettled expenses use EUR",
        ]
