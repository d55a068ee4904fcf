"""
Context Window Builder

Loads the two most recent chapters of a goal for N+2 narrative continuity:
the previous chapter with its full text and the one before it by title.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from models import Chapter

from core.errors import DependencyError, StorageError

logger = logging.getLogger("orchestrator.context")

CONTEXT_CHAPTERS = 2


@dataclass
class ContextWindow:
    previous_chapter: Optional[Chapter]
    older_chapter: Optional[Chapter]
    next_chapter_index: int

    @property
    def previous_chapter_text(self) -> Optional[str]:
        return self.previous_chapter.chapter_text if self.previous_chapter else None

    @property
    def previous_chapter_title(self) -> Optional[str]:
        return self.previous_chapter.chapter_title if self.previous_chapter else None

    @property
    def older_chapter_summary(self) -> Optional[str]:
        if not self.older_chapter or not self.older_chapter.chapter_title:
            return None
        return f"Chapter {self.older_chapter.chapter_index}: {self.older_chapter.chapter_title}"


async def build_context_window(store, goal_id: str) -> ContextWindow:
    """
    Fetch recent chapter history for a goal.

    Raises:
        DependencyError: CHAPTER_FETCH_ERROR if history cannot be read.
    """
    try:
        chapters = await store.get_recent_chapters(goal_id, limit=CONTEXT_CHAPTERS)
    except StorageError as e:
        logger.error(f"[build_context_window] Failed to fetch chapters for goal {goal_id}: {e}")
        raise DependencyError("CHAPTER_FETCH_ERROR", "Failed to load chapter history", detail=str(e))

    chapters = sorted(chapters, key=lambda c: c.chapter_index, reverse=True)
    previous = chapters[0] if chapters else None
    older = chapters[1] if len(chapters) > 1 else None
    next_index = (previous.chapter_index if previous else 0) + 1

    return ContextWindow(previous_chapter=previous, older_chapter=older, next_chapter_index=next_index)
