"""
Assistant memory consolidation.

Recent assistant conversation turns are folded into one
``ConversationSummary`` per (user, family). Summaries are built from the
messages themselves; no model is called. A message is consolidated at most
once because each run starts after the newest summary's window.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.shared.models import AssistantMessage, ConversationSummary, utcnow

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 80
MAX_SNIPPETS = 5


def _snippet(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= SNIPPET_LENGTH:
        return text
    return text[:SNIPPET_LENGTH].rstrip() + "..."


def summarize_messages(messages: List[AssistantMessage]) -> str:
    """Plain-text digest of a conversation window."""
    user_turns = [m for m in messages if m.role == "user"]
    lines = [
        f"{len(messages)} messages ({len(user_turns)} from the user) "
        f"between {messages[0].created_at.isoformat()} and {messages[-1].created_at.isoformat()}."
    ]
    for message in user_turns[:MAX_SNIPPETS]:
        lines.append(f"- {_snippet(message.content)}")
    if len(user_turns) > MAX_SNIPPETS:
        lines.append(f"- ... and {len(user_turns) - MAX_SNIPPETS} more")
    return "\n".join(lines)


async def _last_window_end(session: AsyncSession, user_id: UUID, family_id: int) -> Optional[datetime]:
    result = await session.execute(
        select(func.max(ConversationSummary.window_end)).where(
            ConversationSummary.user_id == user_id,
            ConversationSummary.family_id == family_id,
        )
    )
    return result.scalar_one_or_none()


async def consolidate_memories(
    session: AsyncSession,
    window_hours: int = 6,
    user_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Summarise assistant messages from the last ``window_hours``.

    Args:
        session: Database session
        window_hours: How far back to look
        user_id: Restrict the run to one user
        now: Reference time (defaults to utcnow)

    Returns:
        int: Number of summaries written
    """
    now = now or utcnow()
    since = now - timedelta(hours=window_hours)

    query = select(AssistantMessage).where(
        AssistantMessage.created_at >= since,
        AssistantMessage.created_at <= now,
    )
    if user_id is not None:
        query = query.where(AssistantMessage.user_id == user_id)
    result = await session.execute(
        query.order_by(AssistantMessage.created_at.asc(), AssistantMessage.id.asc())
    )

    groups: Dict[Tuple[UUID, int], List[AssistantMessage]] = defaultdict(list)
    for message in result.scalars().all():
        groups[(message.user_id, message.family_id)].append(message)

    created = 0
    for (group_user_id, family_id), messages in groups.items():
        last_end = await _last_window_end(session, group_user_id, family_id)
        if last_end is not None:
            messages = [m for m in messages if m.created_at > last_end]
        if not messages:
            continue

        session.add(
            ConversationSummary(
                user_id=group_user_id,
                family_id=family_id,
                summary=summarize_messages(messages),
                message_count=len(messages),
                window_start=messages[0].created_at,
                window_end=messages[-1].created_at,
            )
        )
        created += 1

    if created:
        await session.commit()
    logger.info(f"Memory consolidation wrote {created} summaries")
    return created
