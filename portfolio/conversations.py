# portfolio/conversations.py
"""
Rebuild conversations from the flat request log.

Entries are walked in time order and a new conversation starts whenever
the idle time since the previous entry is strictly greater than the gap.
Conversation ids are 1-based positions in that partition, so they shift
when the gap, the requester filter or the log itself changes.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from django.conf import settings

from portfolio.models import RequestLog, role_from_path

PREVIEW_CHARS = 140
ELLIPSIS = "…"


@dataclass
class Message:
    id: int
    role: str
    text: str
    created_at: datetime


@dataclass
class Conversation:
    id: int
    started_at: datetime
    ended_at: datetime
    messages: List[Message]


@dataclass
class ConversationSummary:
    id: int
    started_at: datetime
    ended_at: datetime
    message_count: int
    preview: str
    first_entry_id: int


def default_gap() -> timedelta:
    return timedelta(minutes=settings.RAG.get("CONVERSATION_GAP_MINUTES", 20))


def group_by_gap(entries: Iterable, gap: timedelta) -> List[list]:
    groups, current, prev = [], [], None
    for e in entries:
        if prev is not None and e.created_at - prev > gap:
            groups.append(current)
            current = []
        current.append(e)
        prev = e.created_at
    if current:
        groups.append(current)
    return groups


def truncate(s: Optional[str], limit: int = PREVIEW_CHARS) -> str:
    if s is None:
        return ""
    return s if len(s) <= limit else s[:limit - 1] + ELLIPSIS


def build_preview(group: list) -> str:
    for e in group:
        if role_from_path(e.path) != "assistant":
            return truncate(e.payload)
    return truncate(group[0].payload)


def _entries(requester_id: Optional[str]):
    qs = RequestLog.objects.order_by("created_at", "id")
    if requester_id and requester_id.strip():
        qs = qs.filter(requester_id=requester_id)
    return qs.iterator()


def _grouped(gap: Optional[timedelta], requester_id: Optional[str]) -> List[list]:
    return group_by_gap(_entries(requester_id), gap if gap is not None else default_gap())


def list_conversations(gap: Optional[timedelta] = None,
                       requester_id: Optional[str] = None) -> List[ConversationSummary]:
    return [
        ConversationSummary(
            id=idx,
            started_at=group[0].created_at,
            ended_at=group[-1].created_at,
            message_count=len(group),
            preview=build_preview(group),
            first_entry_id=group[0].id,
        )
        for idx, group in enumerate(_grouped(gap, requester_id), start=1)
    ]


def get_conversation(conversation_id: int, gap: Optional[timedelta] = None,
                     requester_id: Optional[str] = None) -> Optional[Conversation]:
    groups = _grouped(gap, requester_id)
    if conversation_id < 1 or conversation_id > len(groups):
        return None
    group = groups[conversation_id - 1]
    return Conversation(
        id=conversation_id,
        started_at=group[0].created_at,
        ended_at=group[-1].created_at,
        messages=[
            Message(id=e.id, role=role_from_path(e.path), text=e.payload, created_at=e.created_at)
            for e in group
        ],
    )
