"""Experience points, ranks and lesson completion."""

import logging
import threading
from typing import Callable, Dict, List, Optional

from .curriculum import default_curriculum
from .models import LearningModule, Lesson, LessonState, Rank, next_rank, rank_for_xp

logger = logging.getLogger(__name__)

DEFAULT_LESSON_XP = 20

ProgressListener = Callable[["ProgressTracker"], None]


class ProgressTracker:
    """Accumulates XP and tracks lesson completion per module.

    The rank is always derived from ``total_xp``, never stored. XP only
    grows: negative awards are rejected.
    """

    def __init__(
        self,
        modules: Optional[List[LearningModule]] = None,
        total_xp: int = 0,
        lesson_xp: int = DEFAULT_LESSON_XP,
    ) -> None:
        """Initialize the tracker.

        Args:
            modules: Learning modules to track (default: built-in curriculum)
            total_xp: Starting XP, e.g. when restoring a saved session
            lesson_xp: XP awarded when a lesson is completed
        """
        if total_xp < 0:
            raise ValueError("total_xp must not be negative")
        self._modules: List[LearningModule] = default_curriculum() if modules is None else modules
        self._total_xp = total_xp
        self._lesson_xp = lesson_xp
        self._listeners: List[ProgressListener] = []
        self._lock = threading.RLock()

    @property
    def total_xp(self) -> int:
        return self._total_xp

    @property
    def rank(self) -> Rank:
        return rank_for_xp(self._total_xp)

    @property
    def modules(self) -> List[LearningModule]:
        return list(self._modules)

    @property
    def overall_progress(self) -> float:
        """Completed lessons over all lessons, across every module."""
        total = sum(m.total_lessons for m in self._modules)
        if total == 0:
            return 0.0
        return sum(m.completed_lessons for m in self._modules) / total

    def xp_to_next_rank(self) -> int:
        """XP still needed for the next tier; 0 at the top tier."""
        nxt = next_rank(self.rank)
        return nxt.min_xp - self._total_xp if nxt else 0

    def module(self, module_id: str) -> Optional[LearningModule]:
        for m in self._modules:
            if m.id == module_id:
                return m
        return None

    def award_xp(self, amount: int) -> bool:
        """Add ``amount`` XP. Non-integer or negative amounts are rejected and return False."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            logger.warning(f"Rejected non-integer XP award: {amount!r}")
            return False
        if amount < 0:
            logger.warning(f"Rejected negative XP award: {amount}")
            return False
        with self._lock:
            before = self.rank
            self._total_xp += amount
            after = self.rank
        if after is not before:
            logger.info(f"Rank up: {before} -> {after} at {self._total_xp} XP")
        self._notify()
        return True

    def complete_lesson(self, lesson_id: str, module_id: str) -> bool:
        """Mark an unlocked lesson completed and award lesson XP.

        Returns False, changing nothing, when the module or lesson is unknown,
        the lesson is locked, or it was already completed.
        """
        with self._lock:
            lesson = self._find_lesson(lesson_id, module_id)
            if lesson is None or lesson.state is not LessonState.UNLOCKED:
                return False
            lesson.is_completed = True
            self._total_xp += self._lesson_xp
        self._notify()
        return True

    def unlock_lesson(self, lesson_id: str, module_id: str) -> bool:
        return self._set_locked(lesson_id, module_id, False)

    def lock_lesson(self, lesson_id: str, module_id: str) -> bool:
        return self._set_locked(lesson_id, module_id, True)

    def on_change(self, callback: ProgressListener) -> Callable[[], None]:
        """Register ``callback(tracker)``; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_locked(self, lesson_id: str, module_id: str, locked: bool) -> bool:
        with self._lock:
            lesson = self._find_lesson(lesson_id, module_id)
            if lesson is None or lesson.is_locked == locked:
                return False
            lesson.is_locked = locked
        self._notify()
        return True

    def _find_lesson(self, lesson_id: str, module_id: str) -> Optional[Lesson]:
        module = self.module(module_id)
        if module is None:
            return None
        return module.lesson(lesson_id)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Progress listener failed")


class ProgressSerializer:
    """Serializer for tracker state to/from JSON-compatible dictionaries.

    Only XP and lesson flags are stored; module and lesson definitions come
    from the curriculum the tracker is restored into.
    """

    @staticmethod
    def serialize(tracker: ProgressTracker) -> dict:
        completed: Dict[str, List[str]] = {}
        locked: Dict[str, List[str]] = {}
        for m in tracker.modules:
            completed[m.id] = [l.id for l in m.lessons if l.is_completed]
            locked[m.id] = [l.id for l in m.lessons if l.is_locked]
        return {
            "total_xp": tracker.total_xp,
            "completed": completed,
            "locked": locked,
        }

    @staticmethod
    def deserialize(
        data: dict,
        modules: Optional[List[LearningModule]] = None,
        lesson_xp: int = DEFAULT_LESSON_XP,
    ) -> ProgressTracker:
        modules = default_curriculum() if modules is None else modules
        completed = data.get("completed", {})
        locked = data.get("locked", {})
        for m in modules:
            done = set(completed.get(m.id, []))
            held = set(locked.get(m.id, []))
            for lesson in m.lessons:
                lesson.is_completed = lesson.id in done
                lesson.is_locked = lesson.id in held
        return ProgressTracker(modules=modules, total_xp=int(data.get("total_xp", 0)), lesson_xp=lesson_xp)
