"""
Unit Tests for the realtime gateway, the hourly job and memory consolidation
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from famconomy.api.config import get_settings
from famconomy.api.realtime import (
    RealtimeGateway,
    _family_id,
    _token_from_handshake,
    family_room,
)
from famconomy.api.scheduler import HOURLY_JOB_ID, create_scheduler, run_hourly_maintenance
from famconomy.api.services.memory_service import consolidate_memories, summarize_messages
from famconomy.shared.models import AssistantMessage, AuthorizationToken, ConversationSummary, utcnow


class FakeSocketServer:
    def __init__(self):
        self.emitted = []

    async def emit(self, event, data, room=None, skip_sid=None, **kwargs):
        self.emitted.append({"event": event, "data": data, "room": room, "skip_sid": skip_sid})


# ============================================================================
# Realtime
# ============================================================================

class TestRealtimeGateway:

    @pytest.mark.asyncio
    async def test_notify_user_targets_user_room(self):
        sio = FakeSocketServer()
        user_id = uuid4()

        await RealtimeGateway(sio).notify_user(user_id, "newNotification", {"id": 1})

        assert sio.emitted == [
            {"event": "newNotification", "data": {"id": 1}, "room": str(user_id), "skip_sid": None}
        ]

    @pytest.mark.asyncio
    async def test_emit_to_family_uses_family_room(self):
        sio = FakeSocketServer()

        await RealtimeGateway(sio).emit_to_family(7, "message:new", {"text": "hi"}, skip_sid="abc")

        assert sio.emitted[0]["room"] == "family:7"
        assert sio.emitted[0]["skip_sid"] == "abc"

    def test_family_room_name(self):
        assert family_room(12) == "family:12"

    def test_handshake_token_from_auth_payload(self):
        assert _token_from_handshake({}, {"token": "Bearer abc"}, "fam_token") == "abc"
        assert _token_from_handshake({}, {"token": "xyz"}, "fam_token") == "xyz"

    def test_handshake_token_from_cookie(self):
        environ = {"HTTP_COOKIE": "other=1; fam_token=cookie-token"}
        assert _token_from_handshake(environ, None, "fam_token") == "cookie-token"
        assert _token_from_handshake({}, None, "fam_token") is None

    @pytest.mark.parametrize("data,expected", [
        ({"familyId": 3}, 3),
        ({"familyId": "4"}, 4),
        (5, 5),
        ({"familyId": 0}, None),
        ({"familyId": "x"}, None),
        (None, None),
    ])
    def test_family_id_from_event(self, data, expected):
        assert _family_id(data) == expected


# ============================================================================
# Scheduler
# ============================================================================

class TestScheduler:

    def test_disabled_by_default(self, session_factory):
        settings = get_settings().model_copy(update={"ENABLE_LINZ_CONSOLIDATION_JOB": False})
        assert create_scheduler(settings, session_factory) is None

    def test_hourly_job_registered_when_enabled(self, session_factory):
        settings = get_settings().model_copy(update={"ENABLE_LINZ_CONSOLIDATION_JOB": True})

        scheduler = create_scheduler(settings, session_factory)

        job = scheduler.get_job(HOURLY_JOB_ID)
        assert job is not None
        assert "minute='0'" in str(job.trigger)

    @pytest.mark.asyncio
    async def test_maintenance_consolidates_and_sweeps(self, factory, session_factory, db_session):
        user = await factory.user()
        family = await factory.family(user)
        now = utcnow()
        await factory.add(
            AssistantMessage(family_id=family.id, user_id=user.id, role="user", content="Plan meals", created_at=now - timedelta(minutes=5)),
            AuthorizationToken(
                token="e" * 64,
                user_id=user.id,
                target_user_id=user.id,
                family_id=family.id,
                granted_scopes=["screen_time"],
                expires_at=now - timedelta(days=1),
            ),
        )

        await run_hourly_maintenance(session_factory, get_settings())

        summaries = (await db_session.execute(select(ConversationSummary))).scalars().all()
        tokens = (await db_session.execute(select(AuthorizationToken))).scalars().all()
        assert len(summaries) == 1
        assert tokens == []


# ============================================================================
# Memory consolidation
# ============================================================================

class TestMemoryConsolidation:

    def test_summary_lists_user_turns(self):
        start = datetime(2024, 5, 1, 12, 0)
        messages = [
            AssistantMessage(role="user", content="What is for dinner?", created_at=start),
            AssistantMessage(role="assistant", content="Tacos.", created_at=start + timedelta(minutes=1)),
            AssistantMessage(role="user", content="x " * 100, created_at=start + timedelta(minutes=2)),
        ]

        summary = summarize_messages(messages)
        lines = summary.splitlines()

        assert lines[0].startswith("3 messages (2 from the user)")
        assert lines[1] == "- What is for dinner?"
        assert lines[2].endswith("...")

    @pytest.mark.asyncio
    async def test_each_message_is_consolidated_once(self, factory, db_session):
        user = await factory.user()
        family = await factory.family(user)
        now = utcnow()
        await factory.add(
            AssistantMessage(family_id=family.id, user_id=user.id, content="first", created_at=now - timedelta(hours=2)),
            AssistantMessage(family_id=family.id, user_id=user.id, content="second", created_at=now - timedelta(hours=1)),
            AssistantMessage(family_id=family.id, user_id=user.id, content="too old", created_at=now - timedelta(hours=10)),
        )

        assert await consolidate_memories(db_session, window_hours=6, now=now) == 1
        assert await consolidate_memories(db_session, window_hours=6, now=now) == 0

        summary = (await db_session.execute(select(ConversationSummary))).scalar_one()
        assert summary.message_count == 2
        assert summary.window_end == now - timedelta(hours=1)
