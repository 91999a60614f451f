# Progress module
"""Gamified learning progress: XP, ranks, lessons and modules."""

from .models import LearningModule, Lesson, LessonState, Rank, next_rank, rank_for_xp
from .curriculum import default_curriculum
from .tracker import ProgressSerializer, ProgressTracker

__all__ = [
    "LearningModule",
    "Lesson",
    "LessonState",
    "Rank",
    "next_rank",
    "rank_for_xp",
    "default_curriculum",
    "ProgressSerializer",
    "ProgressTracker",
]
