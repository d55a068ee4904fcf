"""
Content moderation logging.

User-authored goal text is copied to the moderation_logs table for admin
review. Logging never blocks or fails the request that produced the text.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from core.errors import StorageError

logger = logging.getLogger("orchestrator.moderation")

CONTENT_GOAL_TITLE = "goal_title"
CONTENT_GOAL_DESCRIPTION = "goal_description"
CONTENT_CONTEXT_NOTES = "context_notes"


def build_goal_moderation_entries(
    user_id: str,
    goal_id: str,
    title: str,
    description: Optional[str] = None,
    context_notes: Optional[str] = None,
    context_blocker: Optional[str] = None,
    context_past_efforts: Optional[str] = None,
) -> List[Dict[str, Any]]:
    metadata = {"goal_id": goal_id}
    entries = [{
        "user_id": user_id,
        "content_type": CONTENT_GOAL_TITLE,
        "content_text": title,
        "storage_path": None,
        "metadata": metadata,
    }]
    if description:
        entries.append({
            "user_id": user_id,
            "content_type": CONTENT_GOAL_DESCRIPTION,
            "content_text": description,
            "storage_path": None,
            "metadata": metadata,
        })
    context_text = " | ".join(t for t in (context_notes, context_blocker, context_past_efforts) if t)
    if context_text:
        entries.append({
            "user_id": user_id,
            "content_type": CONTENT_CONTEXT_NOTES,
            "content_text": context_text,
            "storage_path": None,
            "metadata": metadata,
        })
    return entries


async def log_goal_content_for_review(store, entries: List[Dict[str, Any]]) -> int:
    """Write the entries concurrently; returns how many were stored."""
    results = await asyncio.gather(
        *(store.log_moderation(entry) for entry in entries),
        return_exceptions=True,
    )
    stored = 0
    for entry, result in zip(entries, results):
        if isinstance(result, StorageError):
            logger.error(f"[log_goal_content_for_review] Failed to log {entry['content_type']}: {result}")
        elif isinstance(result, BaseException):
            logger.error(f"[log_goal_content_for_review] Unexpected error logging {entry['content_type']}: {result}")
        else:
            stored += 1
    return stored
