"""Data models for learning progress and ranks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Rank(Enum):
    """Rank tiers with their minimum XP."""
    BEGINNER = ("Beginner", 0)
    APPRENTICE = ("Apprentice", 100)
    INVESTOR = ("Investor", 300)
    EXPERT = ("Expert", 500)
    MASTER = ("Master", 1000)

    def __init__(self, title: str, min_xp: int) -> None:
        self.title = title
        self.min_xp = min_xp

    def __str__(self) -> str:
        return self.title


def rank_for_xp(xp: int) -> Rank:
    """Highest rank whose threshold ``xp`` reaches."""
    current = Rank.BEGINNER
    for rank in Rank:
        if xp >= rank.min_xp:
            current = rank
    return current


def next_rank(rank: Rank) -> Optional[Rank]:
    """The tier after ``rank``, or None for the top tier."""
    tiers = list(Rank)
    idx = tiers.index(rank)
    return tiers[idx + 1] if idx + 1 < len(tiers) else None


class LessonState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


@dataclass
class Lesson:
    """A single lesson.

    ``is_locked`` is assigned from outside the tracker; only unlocked,
    incomplete lessons can be completed.
    """
    id: str
    title: str
    subtitle: Optional[str] = None
    is_completed: bool = False
    is_locked: bool = False

    @property
    def state(self) -> LessonState:
        if self.is_completed:
            return LessonState.COMPLETED
        if self.is_locked:
            return LessonState.LOCKED
        return LessonState.UNLOCKED


@dataclass
class LearningModule:
    """A group of lessons with derived progress."""
    id: str
    title: str
    lessons: List[Lesson] = field(default_factory=list)

    @property
    def completed_lessons(self) -> int:
        return sum(1 for lesson in self.lessons if lesson.is_completed)

    @property
    def total_lessons(self) -> int:
        return len(self.lessons)

    @property
    def progress(self) -> float:
        """Fraction of lessons completed, 0.0 for an empty module."""
        if self.total_lessons == 0:
            return 0.0
        return self.completed_lessons / self.total_lessons

    @property
    def is_completed(self) -> bool:
        return self.completed_lessons == self.total_lessons

    def lesson(self, lesson_id: str) -> Optional[Lesson]:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None
