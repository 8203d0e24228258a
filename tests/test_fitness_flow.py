"""
Tests for gym sessions, fitness goals and goal progress.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from flatmate.fitness import goal_progress
from flatmate.models import ErrorCode, FitnessGoal, GymSession


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
WEEK_START = datetime(2024, 3, 11, tzinfo=timezone.utc)
WEEK_END = datetime(2024, 3, 17, 23, 59, tzinfo=timezone.utc)


def weekly_goal(**fields) -> dict:
    return {
        "description": "Three sessions this week",
        "target_metric": "sessionCount",
        "target_value": 3,
        "period": "week",
        "start_date": WEEK_START,
        "end_date": WEEK_END,
        **fields,
    }


@pytest.fixture
def log(app):
    async def _log(member, days_ago=0, duration=45, **fields):
        result = await app.fitness.log_session({
            "member_id": member.id,
            "date": NOW - timedelta(days=days_ago),
            "type": "cardio",
            "duration": duration,
            **fields,
        })
        assert result.success, result.error
        return result.session
    return _log


class TestGoalProgress:

    def session(self, date, duration=30):
        return GymSession(member_id=uuid4(), date=date, type="strength", duration=duration)

    def test_counts_sessions_inside_range(self):
        goal = FitnessGoal(**weekly_goal())
        sessions = [
            self.session(WEEK_START),
            self.session(NOW),
            self.session(WEEK_START - timedelta(seconds=1)),
        ]
        progress = goal_progress(goal, sessions)
        assert progress.progress == 2
        assert progress.sessions_count == 2
        assert progress.percent_complete == 67
        assert progress.is_complete is False

    def test_total_duration(self):
        goal = FitnessGoal(**weekly_goal(target_metric="totalDuration", target_value=120))
        progress = goal_progress(goal, [self.session(NOW, 90), self.session(NOW, 60)])
        assert progress.progress == 150
        assert progress.total_duration == 150
        assert progress.percent_complete == 125
        assert progress.is_complete is True

    def test_half_percent_rounds_up(self):
        goal = FitnessGoal(**weekly_goal(target_value=8))
        progress = goal_progress(goal, [self.session(NOW)])
        assert progress.percent_complete == 13


class TestSessions:

    def test_log_session(self, add_member, log):
        async def scenario():
            amy = await add_member("Amy")
            return amy, await log(amy, days_ago=2, notes="Intervals")

        amy, session = asyncio.run(scenario())
        assert session.member_id == amy.id
        assert session.notes == "Intervals"
        assert session.created_at == NOW

    def test_future_session_rejected(self, app, add_member):
        async def scenario():
            amy = await add_member("Amy")
            return await app.fitness.log_session({
                "member_id": amy.id,
                "date": NOW + timedelta(hours=1),
                "type": "cardio",
                "duration": 30,
            })

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.RULE_VIOLATION
        assert result.error == "Session date cannot be in the future"

    @pytest.mark.parametrize("duration", [0, 601])
    def test_duration_bounds(self, app, add_member, duration):
        async def scenario():
            amy = await add_member("Amy")
            return await app.fitness.log_session({
                "member_id": amy.id,
                "date": NOW,
                "type": "cardio",
                "duration": duration,
            })

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.VALIDATION

    def test_update_session(self, app, clock, add_member, log):
        async def scenario():
            amy = await add_member("Amy")
            session = await log(amy)
            clock.advance(minutes=10)
            return await app.fitness.update_session(session.id, {"duration": 60})

        result = asyncio.run(scenario())
        assert result.success
        assert result.session.duration == 60
        assert result.session.updated_at == NOW + timedelta(minutes=10)

    def test_update_into_future_rejected(self, app, add_member, log):
        async def scenario():
            amy = await add_member("Amy")
            session = await log(amy)
            return await app.fitness.update_session(
                session.id, {"date": NOW + timedelta(days=1)}
            )

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.RULE_VIOLATION

    def test_delete_session(self, app, add_member, log):
        async def scenario():
            amy = await add_member("Amy")
            session = await log(amy)
            return (
                await app.fitness.delete_session(session.id),
                await app.fitness.delete_session(session.id),
            )

        deleted, again = asyncio.run(scenario())
        assert deleted.success
        assert again.error_code == ErrorCode.NOT_FOUND
        assert again.error == "Gym session not found"

    def test_list_sessions_newest_first(self, app, add_member, log):
        async def scenario():
            amy = await add_member("Amy")
            bryan = await add_member("Bryan")
            await log(amy, days_ago=3)
            await log(bryan, days_ago=1)
            await log(amy, days_ago=0)
            return amy, (
                await app.fitness.list_sessions(),
                await app.fitness.list_sessions(member_id=amy.id),
            )

        amy, (everyone, amys) = asyncio.run(scenario())
        assert [s.date for s in everyone] == sorted((s.date for s in everyone), reverse=True)
        assert len(everyone) == 3
        assert [s.member_id for s in amys] == [amy.id, amy.id]


class TestGoals:

    def test_create_goal(self, app):
        result = asyncio.run(app.fitness.create_goal(weekly_goal()))
        assert result.success
        assert result.goal.is_active
        assert result.goal.created_at == NOW

    def test_end_before_start_rejected(self, app):
        result = asyncio.run(app.fitness.create_goal(
            weekly_goal(start_date=WEEK_END, end_date=WEEK_START)
        ))
        assert result.error_code == ErrorCode.VALIDATION
        assert result.error == "End date must be after start date"

    def test_overlapping_active_goal_rejected(self, app):
        async def scenario():
            await app.fitness.create_goal(weekly_goal())
            return await app.fitness.create_goal(weekly_goal(
                description="Another one",
                start_date=WEEK_START + timedelta(days=3),
                end_date=WEEK_END + timedelta(days=3),
            ))

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.RULE_VIOLATION
        assert result.error == "An active goal already exists for this period"

    def test_other_period_may_overlap(self, app):
        async def scenario():
            await app.fitness.create_goal(weekly_goal())
            return await app.fitness.create_goal(weekly_goal(
                period="month",
                start_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
                end_date=datetime(2024, 3, 31, tzinfo=timezone.utc),
            ))

        assert asyncio.run(scenario()).success

    def test_deactivated_goal_frees_the_period(self, app):
        async def scenario():
            first = (await app.fitness.create_goal(weekly_goal())).goal
            deactivated = await app.fitness.update_goal(first.id, {"is_active": False})
            second = await app.fitness.create_goal(weekly_goal(description="Fresh start"))
            return deactivated, second, await app.fitness.list_goals(active_only=True)

        deactivated, second, active = asyncio.run(scenario())
        assert deactivated.success
        assert second.success
        assert [g.id for g in active] == [second.goal.id]

    def test_reactivating_into_overlap_rejected(self, app):
        async def scenario():
            first = (await app.fitness.create_goal(weekly_goal(is_active=False))).goal
            await app.fitness.create_goal(weekly_goal(description="Current"))
            return await app.fitness.update_goal(first.id, {"is_active": True})

        result = asyncio.run(scenario())
        assert result.error_code == ErrorCode.RULE_VIOLATION

    def test_update_unknown_goal(self, app):
        result = asyncio.run(app.fitness.update_goal(uuid4(), {"target_value": 5}))
        assert result.error_code == ErrorCode.NOT_FOUND
        assert result.error == "Fitness goal not found"

    def test_progress_from_logged_sessions(self, app, add_member, log):
        async def scenario():
            amy = await add_member("Amy")
            bryan = await add_member("Bryan")
            goal = (await app.fitness.create_goal(weekly_goal())).goal
            await log(amy, days_ago=1)
            await log(bryan, days_ago=2)
            await log(amy, days_ago=10)
            return await app.fitness.get_goal_progress(goal.id)

        result = asyncio.run(scenario())
        assert result.success
        assert result.progress.progress == 2
        assert result.progress.percent_complete == 67

    def test_progress_for_unknown_goal(self, app):
        result = asyncio.run(app.fitness.get_goal_progress(uuid4()))
        assert result.error_code == ErrorCode.NOT_FOUND
