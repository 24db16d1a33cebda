"""
Orchestrator error types.

These signal misuse of the wizard (a handler called in the wrong step,
an illegal transition, a mutation after generation began). Backend
failures are never re-raised as these; they become notices instead.
"""


class WizardError(Exception):
    """Base error for wizard operations."""

    pass


class InvalidTransitionError(WizardError):
    """The requested step transition is not in the transition table."""

    def __init__(self, source, target):
        super().__init__(f"Cannot move from '{source.value}' to '{target.value}'")
        self.source = source
        self.target = target


class StepMismatchError(WizardError):
    """A handler was invoked while the wizard is in another step."""

    def __init__(self, handler: str, expected, actual):
        expected_names = ", ".join(step.value for step in expected)
        super().__init__(
            f"'{handler}' requires step {expected_names}, wizard is at '{actual.value}'"
        )
        self.handler = handler
        self.expected = tuple(expected)
        self.actual = actual


class DraftFrozenError(WizardError):
    """The preference draft was mutated after being sent for generation."""

    pass


class SlotNotFoundError(WizardError):
    """No activity exists at the requested (day, period, index)."""

    pass


class PreferenceValidationError(WizardError):
    """Collected preferences do not satisfy a step's requirements."""

    def __init__(self, errors):
        super().__init__("; ".join(errors))
        self.errors = list(errors)
