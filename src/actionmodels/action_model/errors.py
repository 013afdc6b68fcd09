"""Exceptions raised by action models."""


class RejectParameters(Exception):
    """Raised by a step function when a parameter combination is invalid.

    Depending on how a model is fitted, a rejection either gives the whole joint
    sample a probability of zero, or aborts the fitting run.
    """


class AttributeNotFoundError(LookupError):
    """Raised when an action model has no attribute with the requested name."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"The action model has no {kind} named '{name}'.")
