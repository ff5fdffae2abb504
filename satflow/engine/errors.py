"""Exceptions raised by the test delivery engine."""


class EngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(EngineError):
    """Structure table or question supply cannot produce a valid session."""


class InvalidTransitionError(EngineError):
    """A trigger was applied to a phase that does not accept it."""

    def __init__(self, phase: str, trigger: str) -> None:
        super().__init__(f"Trigger '{trigger}' is not valid in phase '{phase}'")
        self.phase = phase
        self.trigger = trigger


class ModuleFinalizedError(EngineError):
    """A module was mutated or finalized after its score was frozen."""


class UnknownQuestionError(EngineError):
    """A question id does not belong to the addressed module."""


class PersistenceError(EngineError):
    """The persistence sink failed to store a finished attempt."""
