"""The mutable attributes of an action model for one session.

`ModelAttributes` holds one value cell for every parameter, state and action, the
initial value of every state, and the attributes of the submodel. Step functions read
it through `load_parameters`, `load_states` and `load_actions`, and change it only
through `update_state`.
"""

from typing import Any, Callable, Iterable, Mapping

import numpy as np

from .errors import AttributeNotFoundError
from .specs import ParameterLink
from .submodel import ATTRIBUTE_NOT_FOUND, NoSubmodelAttributes, SubmodelAttributes


class Variable:
    """A value cell together with the constructor for its numeric context."""

    __slots__ = ("value", "loader")

    def __init__(self, value: Any, loader: Callable[[Any], Any]):
        self.loader = loader
        self.value = None if value is None else loader(value)

    def set(self, value: Any) -> None:
        """Store a value, converting it to the cell's type."""
        self.value = None if value is None else self.loader(value)

    def __repr__(self) -> str:
        """Return the string representation of the cell."""
        return f"Variable({self.value!r})"


class ModelAttributes:
    """The parameters, states and actions of one action model instance.

    Parameters
    ----------
    parameters
        Value cells for the parameters.
    states
        Value cells for the states.
    actions
        Value cells for the actions. Actions are empty until one is stored.
    initial_states
        The initial value of every state. A `ParameterLink` means the value is copied
        from the current value of a parameter on reset.
    submodel : optional
        The attributes of the submodel.
    """

    def __init__(
        self,
        parameters: dict[str, Variable],
        states: dict[str, Variable],
        actions: dict[str, Variable],
        initial_states: dict[str, Any],
        submodel: SubmodelAttributes | None = None,
    ):
        self.parameters = parameters
        self.states = states
        self.actions = actions
        self.initial_states = initial_states
        self.submodel = submodel if submodel is not None else NoSubmodelAttributes()

    def reset(self) -> None:
        """Restore states to their initial values and clear the actions."""
        for name, state in self.states.items():
            initial = self.initial_states.get(name)
            if isinstance(initial, ParameterLink):
                initial = self.parameters[initial.parameter].value
            state.set(_copy(initial))

        for action in self.actions.values():
            action.value = None

        self.submodel.reset()

    def load_parameters(self) -> dict[str, Any]:
        """Return the current values of the model's own parameters."""
        return {name: var.value for name, var in self.parameters.items()}

    def load_states(self) -> dict[str, Any]:
        """Return the current values of the model's own states."""
        return {name: var.value for name, var in self.states.items()}

    def load_actions(self) -> dict[str, Any]:
        """Return the most recent actions, None where no action was stored yet."""
        return {name: var.value for name, var in self.actions.items()}

    def update_state(self, name: str, value: Any) -> None:
        """Set the value of one of the model's own states."""
        if name not in self.states:
            raise AttributeNotFoundError("state", name)
        self.states[name].set(value)

    def store_action(self, name: str, value: Any) -> None:
        """Record the realized value of an action."""
        if name not in self.actions:
            raise AttributeNotFoundError("action", name)
        self.actions[name].set(value)

    def get_parameters(self, names: str | Iterable[str] | None = None) -> Any:
        """Get parameter values, looking in the submodel for unknown names.

        Parameters
        ----------
        names : optional
            A single name, a list of names, or None for all parameters.

        Returns
        -------
        Any
            The value for a single name, otherwise a dict of values.

        Raises
        ------
        AttributeNotFoundError
            If a name is neither a parameter of the model nor of its submodel.
        """
        if names is None:
            return self.submodel.get_parameters() | self.load_parameters()
        if isinstance(names, str):
            return self._get("parameter", names)
        return {name: self._get("parameter", name) for name in names}

    def get_states(self, names: str | Iterable[str] | None = None) -> Any:
        """Get state values, looking in the submodel for unknown names."""
        if names is None:
            return self.submodel.get_states() | self.load_states()
        if isinstance(names, str):
            return self._get("state", names)
        return {name: self._get("state", name) for name in names}

    def get_actions(self, names: str | Iterable[str] | None = None) -> Any:
        """Get the most recent action values."""
        if names is None:
            return self.load_actions()
        if isinstance(names, str):
            return self._get("action", names)
        return {name: self._get("action", name) for name in names}

    def set_parameters(
        self, names: str | Mapping[str, Any], value: Any = None
    ) -> None:
        """Set one parameter, or several from a mapping of names to values."""
        for name, val in _pairs(names, value):
            self._set("parameter", name, val)

    def set_states(self, names: str | Mapping[str, Any], value: Any = None) -> None:
        """Set one state, or several from a mapping of names to values."""
        for name, val in _pairs(names, value):
            self._set("state", name, val)

    def set_actions(self, names: str | Mapping[str, Any], value: Any = None) -> None:
        """Set one action, or several from a mapping of names to values."""
        for name, val in _pairs(names, value):
            self._set("action", name, val)

    def _cells(self, kind: str) -> dict[str, Variable]:
        return {
            "parameter": self.parameters,
            "state": self.states,
            "action": self.actions,
        }[kind]

    def _get(self, kind: str, name: str) -> Any:
        cells = self._cells(kind)
        if name in cells:
            return cells[name].value

        if kind == "parameter":
            value = self.submodel.get_parameters(name)
        elif kind == "state":
            value = self.submodel.get_states(name)
        else:
            value = ATTRIBUTE_NOT_FOUND

        if value is ATTRIBUTE_NOT_FOUND:
            raise AttributeNotFoundError(kind, name)
        return value

    def _set(self, kind: str, name: str, value: Any) -> None:
        cells = self._cells(kind)
        if name in cells:
            cells[name].set(value)
            return

        if kind == "parameter":
            result = self.submodel.set_parameters(name, value)
        elif kind == "state":
            result = self.submodel.set_states(name, value)
        else:
            result = ATTRIBUTE_NOT_FOUND

        if result is ATTRIBUTE_NOT_FOUND:
            raise AttributeNotFoundError(kind, name)

    def __repr__(self) -> str:
        """Return the string representation of the attributes."""
        return (
            f"ModelAttributes(parameters={self.load_parameters()}, "
            f"states={self.load_states()}, actions={self.load_actions()})"
        )


def _pairs(names: str | Mapping[str, Any], value: Any) -> Iterable[tuple[str, Any]]:
    if isinstance(names, str):
        return [(names, value)]
    return list(names.items())


def _copy(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.copy()
    return value


def load_parameters(attributes: ModelAttributes) -> dict[str, Any]:
    """Return the current parameter values of an action model."""
    return attributes.load_parameters()


def load_states(attributes: ModelAttributes) -> dict[str, Any]:
    """Return the current state values of an action model."""
    return attributes.load_states()


def load_actions(attributes: ModelAttributes) -> dict[str, Any]:
    """Return the most recent actions of an action model."""
    return attributes.load_actions()


def update_state(attributes: ModelAttributes, name: str, value: Any) -> None:
    """Set the value of a state from inside a step function."""
    attributes.update_state(name, value)
