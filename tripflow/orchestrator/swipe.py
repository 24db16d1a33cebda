"""
Swipe-to-answer interpreter.

Turns drag gestures (or button presses) into yes/no answers for the
follow-up questions. `classify` holds the decision rule and has no
state; `SwipeInterpreter` tracks the active question, the drag delta
and the animation lock.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from tripflow.shared.contracts import SmartQuestion


@dataclass(frozen=True)
class Commit:
    """A committed answer: True for a right swipe (yes), False for left (no)."""

    answer: bool

    @property
    def direction(self) -> str:
        return "right" if self.answer else "left"


@dataclass(frozen=True)
class Cancel:
    """The gesture did not travel far enough; nothing is recorded."""


Decision = Union[Commit, Cancel]


def classify(delta_x: float, threshold: float) -> Decision:
    """
    Classify a released gesture by its signed horizontal delta.

    The threshold itself is exclusive: a delta of exactly +threshold or
    -threshold cancels.
    """
    if delta_x > threshold:
        return Commit(True)
    if delta_x < -threshold:
        return Commit(False)
    return Cancel()


class SwipeInterpreter:
    """
    Gesture state for one traversal of a question sequence.

    Questions are consumed front to back exactly once. After a commit the
    interpreter is locked until `advance()` is called; gesture starts and
    presses during the lock are ignored.
    """

    def __init__(self, questions: Sequence[SmartQuestion], threshold: float):
        self.questions: Tuple[SmartQuestion, ...] = tuple(questions)
        self.threshold = threshold
        self.index = 0
        self.delta: Tuple[float, float] = (0.0, 0.0)
        self.animating = False
        self._origin: Optional[Tuple[float, float]] = None

    @property
    def current(self) -> Optional[SmartQuestion]:
        if self.complete:
            return None
        return self.questions[self.index]

    @property
    def complete(self) -> bool:
        return self.index >= len(self.questions)

    @property
    def dragging(self) -> bool:
        return self._origin is not None

    def begin(self, x: float, y: float) -> bool:
        """Start a drag. Returns False when the gesture is ignored."""
        if self.animating or self.complete:
            return False
        self._origin = (x, y)
        self.delta = (0.0, 0.0)
        return True

    def move(self, x: float, y: float) -> None:
        if not self.dragging or self.animating:
            return
        self.delta = (x - self._origin[0], y - self._origin[1])

    def release(self) -> Decision:
        """End the drag and classify it."""
        if not self.dragging or self.animating:
            return Cancel()
        self._origin = None

        decision = classify(self.delta[0], self.threshold)
        if isinstance(decision, Cancel):
            self.delta = (0.0, 0.0)
        else:
            self.animating = True
        return decision

    def press(self, answer: bool) -> Decision:
        """Button equivalent of a full swipe."""
        if self.animating or self.complete:
            return Cancel()
        self._origin = None
        self.animating = True
        return Commit(answer)

    def advance(self) -> bool:
        """
        Release the animation lock and move to the next question.

        Returns:
            True once every question has been answered
        """
        self.animating = False
        self.delta = (0.0, 0.0)
        self.index += 1
        return self.complete
