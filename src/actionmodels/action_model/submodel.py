"""The interface for submodels nested inside an action model.

A submodel is a self-contained component with its own parameters and states, for
example a reusable learning rule. The action model owns one `Submodel`, which creates
a fresh `SubmodelAttributes` for every numeric context. Lookups that fail in a
submodel return the `ATTRIBUTE_NOT_FOUND` sentinel, and the enclosing
`ModelAttributes` turns it into an `AttributeNotFoundError`.
"""

from abc import ABC, abstractmethod
from typing import Any

from .numeric import NumericContext


class AttributeNotFound:
    """Sentinel returned by submodels for names they do not own."""

    _instance = None

    def __new__(cls):
        """Return the single instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        """Return the string representation of the sentinel."""
        return "ATTRIBUTE_NOT_FOUND"

    def __bool__(self) -> bool:
        """Never evaluate as a valid value in a condition."""
        return False


ATTRIBUTE_NOT_FOUND = AttributeNotFound()


class SubmodelAttributes(ABC):
    """The mutable attributes of a submodel for one session."""

    @abstractmethod
    def get_parameters(self, name: str | None = None) -> Any:
        """Return one parameter value, or all of them as a dict if `name` is None."""

    @abstractmethod
    def get_states(self, name: str | None = None) -> Any:
        """Return one state value, or all of them as a dict if `name` is None."""

    @abstractmethod
    def set_parameters(self, name: str, value: Any) -> Any:
        """Set one parameter. Return `ATTRIBUTE_NOT_FOUND` for unknown names."""

    @abstractmethod
    def set_states(self, name: str, value: Any) -> Any:
        """Set one state. Return `ATTRIBUTE_NOT_FOUND` for unknown names."""

    @abstractmethod
    def reset(self) -> None:
        """Restore every state to its initial value."""


class Submodel(ABC):
    """The immutable specification of a submodel."""

    @abstractmethod
    def initialize_attributes(self, context: NumericContext) -> SubmodelAttributes:
        """Create fresh attributes with values typed for `context`."""

    @abstractmethod
    def get_parameter_types(self) -> dict[str, Any]:
        """Return the semantic type of every parameter."""

    @abstractmethod
    def get_state_types(self) -> dict[str, Any]:
        """Return the semantic type of every state."""


class NoSubmodelAttributes(SubmodelAttributes):
    """Attributes of an action model without a submodel."""

    def get_parameters(self, name: str | None = None) -> Any:  # noqa: D102
        return {} if name is None else ATTRIBUTE_NOT_FOUND

    def get_states(self, name: str | None = None) -> Any:  # noqa: D102
        return {} if name is None else ATTRIBUTE_NOT_FOUND

    def set_parameters(self, name: str, value: Any) -> Any:  # noqa: D102
        return ATTRIBUTE_NOT_FOUND

    def set_states(self, name: str, value: Any) -> Any:  # noqa: D102
        return ATTRIBUTE_NOT_FOUND

    def reset(self) -> None:  # noqa: D102
        return None


class NoSubmodel(Submodel):
    """Used when an action model has no submodel."""

    def initialize_attributes(  # noqa: D102
        self, context: NumericContext
    ) -> SubmodelAttributes:
        return NoSubmodelAttributes()

    def get_parameter_types(self) -> dict[str, Any]:  # noqa: D102
        return {}

    def get_state_types(self) -> dict[str, Any]:  # noqa: D102
        return {}
