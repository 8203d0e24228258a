"""
Tests for the member workflow.
"""

import asyncio
from uuid import uuid4

from flatmate.config import AppSettings
from flatmate.models import AuditEventType, ErrorCode, Member
from flatmate.orchestrator import MemberFlow
from flatmate.services.storage import CollectionRepository, KeyValueAuditStorage, StorageKeys
from flatmate.validation import MemberValidator


class TestCreateMember:

    def test_create_member(self, app):
        result = asyncio.run(app.members.create_member({"name": "Amy", "color": "#FF0000"}))
        assert result.success
        assert result.member.name == "Amy"
        assert result.member.color == "#FF0000"

    def test_invalid_color_is_validation_error(self, app):
        result = asyncio.run(app.members.create_member({"name": "Amy", "color": "red"}))
        assert not result.success
        assert result.error_code == ErrorCode.VALIDATION
        assert result.issues[0].field == "color"

    def test_duplicate_name_rejected(self, app, add_member):
        async def scenario():
            await add_member("Amy")
            return await app.members.create_member({"name": "  amy "})

        result = asyncio.run(scenario())
        assert not result.success
        assert result.error_code == ErrorCode.RULE_VIOLATION
        assert result.error == "A member named 'amy' already exists"

    def test_name_reusable_after_deactivation(self, app, add_member):
        async def scenario():
            amy = await add_member("Amy")
            await app.members.deactivate_member(amy.id)
            return await app.members.create_member({"name": "Amy"})

        assert asyncio.run(scenario()).success

    def test_household_size_limit(self, storage):
        members = CollectionRepository(storage, StorageKeys.MEMBERS, Member)
        flow = MemberFlow(members, MemberValidator(members, AppSettings(max_active_members=2)))

        async def scenario():
            await flow.create_member({"name": "Amy"})
            await flow.create_member({"name": "Bryan"})
            return await flow.create_member({"name": "Cara"})

        result = asyncio.run(scenario())
        assert not result.success
        assert "at most 2 active members" in result.error

    def test_creation_is_audited(self, app, storage):
        async def scenario():
            result = await app.members.create_member({"name": "Amy"})
            audit = KeyValueAuditStorage(storage)
            return await audit.get_events_by_entity("member", result.member.id)

        events = asyncio.run(scenario())
        assert [e.event_type for e in events] == [AuditEventType.MEMBER_CREATED]


class TestUpdateMember:

    def test_partial_update(self, app, add_member):
        async def scenario():
            amy = await add_member("Amy", share_ratio=0.5)
            result = await app.members.update_member(amy.id, {"color": "#00FF00"})
            return result, await app.members.get_member(amy.id)

        result, stored = asyncio.run(scenario())
        assert result.success
        assert stored.color == "#00FF00"
        assert stored.share_ratio == 0.5
        assert stored.name == "Amy"

    def test_rename_to_existing_name_rejected(self, app, add_member):
        async def scenario():
            await add_member("Amy")
            bryan = await add_member("Bryan")
            return await app.members.update_member(bryan.id, {"name": "AMY"})

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.RULE_VIOLATION

    def test_unknown_member(self, app):
        result = asyncio.run(app.members.update_member(uuid4(), {"name": "Ghost"}))
        assert result.error_code == ErrorCode.NOT_FOUND


class TestDeactivateMember:

    def test_deactivated_member_hidden_from_roster(self, app, add_member):
        async def scenario():
            amy = await add_member("Amy")
            await add_member("Bryan")
            result = await app.members.deactivate_member(amy.id)
            return (
                result,
                await app.members.list_members(),
                await app.members.list_members(include_inactive=True),
            )

        result, active, everyone = asyncio.run(scenario())
        assert result.success
        assert not result.member.is_active
        assert [m.name for m in active] == ["Bryan"]
        assert [m.name for m in everyone] == ["Amy", "Bryan"]

    def test_unknown_member(self, app):
        result = asyncio.run(app.members.deactivate_member(uuid4()))
        assert result.error_code == ErrorCode.NOT_FOUND
        assert result.error == "Member not found"
