"""The ActionModel class, which binds a step function to its attribute schema."""

import logging
from typing import Any, Mapping

from .._types import StepFunction
from ..defaults import DEFAULT_NAMES
from .attributes import ModelAttributes, Variable
from .numeric import SIMULATION, NumericContext
from .specs import (
    Action,
    InitialStateParameter,
    Observation,
    Parameter,
    ParameterLink,
    State,
    is_compatible,
    load_type,
)
from .submodel import NoSubmodel, Submodel

_logger = logging.getLogger("actionmodels")


class ActionModel:
    """An executable action model.

    An action model turns observations into action distributions while keeping track
    of its own states. The step function is called once per timestep with the
    `ModelAttributes` of the current session and one value per observation, and
    returns one numpyro distribution per action (a single distribution, or a tuple
    with one distribution per action).

    Parameters
    ----------
    step
        The step function.
    parameters : optional
        A mapping from names to `Parameter` or `InitialStateParameter`.
    states : optional
        A mapping from names to `State`.
    observations : optional
        A mapping from names to `Observation`. The order of the mapping is the order
        in which observation values are passed to the step function.
    actions
        A mapping from names to `Action`. The order of the mapping is the order of
        the distributions returned by the step function.
    submodel : optional
        A `Submodel` with its own parameters and states.
    verbose : optional
        Whether to log when single attributes are given default names. Defaults to
        True.

    A single specification can be passed in place of a mapping, in which case it is
    named after its kind, e.g. "observation".

    Raises
    ------
    ValueError
        If the action model has no actions, if an `InitialStateParameter` refers to a
        state that does not exist or has an incompatible type, or if names clash.
    """

    def __init__(
        self,
        step: StepFunction,
        parameters: Mapping[str, Parameter | InitialStateParameter]
        | Parameter
        | InitialStateParameter
        | None = None,
        states: Mapping[str, State] | State | None = None,
        observations: Mapping[str, Observation] | Observation | None = None,
        actions: Mapping[str, Action] | Action | None = None,
        submodel: Submodel | None = None,
        verbose: bool = True,
    ):
        self.step = step
        self.parameters = _as_named(
            parameters, (Parameter, InitialStateParameter), "parameters", verbose
        )
        self.states = _as_named(states, State, "states", verbose)
        self.observations = _as_named(
            observations, Observation, "observations", verbose
        )
        self.actions = _as_named(actions, Action, "actions", verbose)
        self.submodel = submodel if submodel is not None else NoSubmodel()

        self._validate()

    @property
    def name(self) -> str:
        """The name of the step function."""
        return getattr(self.step, "__name__", type(self.step).__name__)

    @property
    def parameter_names(self) -> list[str]:
        """Names of the parameters, including those of the submodel."""
        return list(self.parameters) + list(self.submodel.get_parameter_types())

    @property
    def state_names(self) -> list[str]:
        """Names of the states, including those of the submodel."""
        return list(self.states) + list(self.submodel.get_state_types())

    @property
    def observation_names(self) -> list[str]:
        """Names of the observations, in the order passed to the step function."""
        return list(self.observations)

    @property
    def action_names(self) -> list[str]:
        """Names of the actions, in the order returned by the step function."""
        return list(self.actions)

    def get_parameter_type(self, name: str) -> Any:
        """Return the semantic type of a parameter of the model or its submodel."""
        if name in self.parameters:
            return self.parameters[name].type
        return self.submodel.get_parameter_types()[name]

    def initialize_attributes(
        self, context: NumericContext = SIMULATION
    ) -> ModelAttributes:
        """Create fresh attributes with values typed for a numeric context.

        Parameters
        ----------
        context : optional
            `SIMULATION` for plain values or `FITTING` for differentiable JAX values.
            Defaults to `SIMULATION`.

        Returns
        -------
        ModelAttributes
            Attributes with every state reset to its initial value.
        """
        parameters = {
            name: Variable(spec.value, load_type(spec.type, context))
            for name, spec in self.parameters.items()
        }
        states = {
            name: Variable(None, load_type(spec.type, context))
            for name, spec in self.states.items()
        }
        actions = {
            name: Variable(None, load_type(spec.type, context))
            for name, spec in self.actions.items()
        }

        initial_states: dict[str, Any] = {
            name: spec.initial_value for name, spec in self.states.items()
        }
        for name, spec in self.parameters.items():
            if isinstance(spec, InitialStateParameter):
                initial_states[spec.state] = ParameterLink(name)

        attributes = ModelAttributes(
            parameters=parameters,
            states=states,
            actions=actions,
            initial_states=initial_states,
            submodel=self.submodel.initialize_attributes(context),
        )
        attributes.reset()
        return attributes

    def _validate(self) -> None:
        if not self.actions:
            raise ValueError("An action model must have at least one action.")

        linked_states: dict[str, str] = {}
        for name, spec in self.parameters.items():
            if not isinstance(spec, InitialStateParameter):
                continue
            if spec.state not in self.states:
                raise ValueError(
                    f"The initial state parameter '{name}' refers to the state "
                    f"'{spec.state}', which does not exist."
                )
            if spec.state in linked_states:
                raise ValueError(
                    f"The state '{spec.state}' is initialized by both "
                    f"'{linked_states[spec.state]}' and '{name}'."
                )
            state_type = self.states[spec.state].type
            if not is_compatible(spec.type, state_type):
                raise ValueError(
                    f"The initial state parameter '{name}' has type {spec.type}, "
                    f"which is not compatible with the type {state_type} of the "
                    f"state '{spec.state}'."
                )
            linked_states[spec.state] = name

        _check_disjoint(
            "parameter", list(self.parameters), self.submodel.get_parameter_types()
        )
        _check_disjoint("state", list(self.states), self.submodel.get_state_types())
        _check_disjoint("state", self.state_names, self.actions)

    def __repr__(self) -> str:
        """Return a summary of the action model."""
        return "\n".join(
            [
                "-- ActionModel --",
                f"Action model function: {self.name}",
                f"Number of parameters: {len(self.parameter_names)}",
                f"Number of states: {len(self.state_names)}",
                f"Number of observations: {len(self.observations)}",
                f"Number of actions: {len(self.actions)}",
            ]
        )


def _as_named(specs: Any, kinds: Any, group: str, verbose: bool) -> dict[str, Any]:
    if specs is None:
        return {}
    if isinstance(specs, kinds):
        default_name = DEFAULT_NAMES[group]
        if verbose:
            _logger.info(
                "A single %s was passed, and is given the name '%s'. Pass a dict "
                "to name it.",
                default_name,
                default_name,
            )
        return {default_name: specs}

    specs = dict(specs)
    for name, spec in specs.items():
        if not isinstance(spec, kinds):
            raise ValueError(
                f"The {group} entry '{name}' must be one of {kinds}, "
                f"got {type(spec).__name__}."
            )
    return specs


def _check_disjoint(kind: str, names: list[str], other: Mapping[str, Any]) -> None:
    clashes = sorted(set(names) & set(other))
    if clashes:
        raise ValueError(
            f"The {kind} name(s) {', '.join(clashes)} are used more than once in the "
            "action model."
        )
