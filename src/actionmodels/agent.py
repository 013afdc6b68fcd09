"""Agents for simulating behaviour from an action model.

An `Agent` pairs the attributes of one action model with a history of selected
states and actions. Observations are passed to the agent one at a time, and the agent
samples an action from the distributions returned by the step function.
"""

import logging
from typing import Any, Iterable, Sequence

import jax
import numpy as np

from .action_model import SIMULATION, ActionModel, AttributeNotFoundError
from .action_model.specs import load_type

_logger = logging.getLogger("actionmodels")


class Agent:
    """An action model instance that can be used for simulation.

    Use `init_agent` to create agents.

    Parameters
    ----------
    action_model
        The action model to run.
    history_states
        Names of the states whose values are recorded at every timestep.
    random_seed : optional
        Seed for the random number generator used to sample actions.
    """

    def __init__(
        self,
        action_model: ActionModel,
        history_states: Sequence[str] = (),
        random_seed: int | None = None,
    ):
        self.action_model = action_model
        self.attributes = action_model.initialize_attributes(SIMULATION)
        self.history_states = list(history_states)
        self.n_timesteps = 0
        self.history: dict[str, list[Any]] = {}

        self._observation_loaders = [
            load_type(spec.type, SIMULATION)
            for spec in action_model.observations.values()
        ]
        seed = np.random.default_rng(random_seed).integers(2**31)
        self._key = jax.random.PRNGKey(seed)

        for name in self.history_states:
            # Fails early for unknown states
            self.attributes.get_states(name)

        self.reset()

    def reset(self) -> None:
        """Reset the states and clear the history back to the initial snapshot."""
        self.attributes.reset()
        self.n_timesteps = 0
        self.history = {
            name: [_snapshot(self.attributes.get_states(name))]
            for name in self.history_states
        }
        for name in self.action_model.action_names:
            self.history[name] = [None]

    def observe(self, observation: Any = ()) -> Any:
        """Pass one observation to the agent and sample an action.

        Parameters
        ----------
        observation : optional
            The observation value. With several observations, a tuple with one value
            per observation. Can be omitted for models without observations.

        Returns
        -------
        Any
            The sampled action, or a tuple of actions for models with several
            actions.

        Raises
        ------
        RejectParameters
            If the step function rejects the current parameters.
        """
        observations = self._prepare_observation(observation)
        distributions = self.action_model.step(self.attributes, *observations)
        distributions = _as_tuple(distributions)

        action_names = self.action_model.action_names
        if len(distributions) != len(action_names):
            raise ValueError(
                f"The step function returned {len(distributions)} distribution(s), "
                f"but the action model has {len(action_names)} action(s)."
            )

        actions = []
        for name, distribution in zip(action_names, distributions):
            self._key, subkey = jax.random.split(self._key)
            self.attributes.store_action(name, distribution.sample(subkey))
            action = self.attributes.get_actions(name)
            actions.append(action)
            self.history[name].append(action)

        for name in self.history_states:
            self.history[name].append(_snapshot(self.attributes.get_states(name)))

        self.n_timesteps += 1

        return actions[0] if len(actions) == 1 else tuple(actions)

    def simulate(self, observations: Iterable[Any]) -> list[Any]:
        """Pass a sequence of observations to the agent, one timestep at a time.

        Parameters
        ----------
        observations
            One entry per timestep, in the format accepted by `observe`. A 2-D array
            is read row by row.

        Returns
        -------
        list
            One action (or tuple of actions) per timestep.
        """
        if isinstance(observations, np.ndarray) and observations.ndim == 2:
            observations = [tuple(row) for row in observations]
        return [self.observe(observation) for observation in observations]

    def get_history(self, name: str | None = None) -> Any:
        """Return the recorded values of one state or action, or all of them."""
        if name is None:
            return {key: list(values) for key, values in self.history.items()}
        if name not in self.history:
            raise AttributeNotFoundError("recorded state", name)
        return list(self.history[name])

    def get_parameters(self, names: str | Iterable[str] | None = None) -> Any:
        """Return parameter values."""
        return self.attributes.get_parameters(names)

    def set_parameters(self, names: str | dict[str, Any], value: Any = None) -> None:
        """Set parameter values. Call `reset` to apply initial-state parameters."""
        self.attributes.set_parameters(names, value)

    def get_states(self, names: str | Iterable[str] | None = None) -> Any:
        """Return state values."""
        return self.attributes.get_states(names)

    def set_states(self, names: str | dict[str, Any], value: Any = None) -> None:
        """Set state values."""
        self.attributes.set_states(names, value)

    def get_actions(self, names: str | Iterable[str] | None = None) -> Any:
        """Return the most recent actions."""
        return self.attributes.get_actions(names)

    def _prepare_observation(self, observation: Any) -> tuple:
        n_observations = len(self._observation_loaders)
        if n_observations == 1:
            values: tuple = (observation,)
        else:
            values = tuple(observation) if n_observations else ()
        if len(values) != n_observations:
            raise ValueError(
                f"Expected {n_observations} observation value(s), got {len(values)}."
            )
        return tuple(
            loader(value) for loader, value in zip(self._observation_loaders, values)
        )

    def __repr__(self) -> str:
        """Return a summary of the agent."""
        return (
            f"Agent(action_model={self.action_model.name!r}, "
            f"n_timesteps={self.n_timesteps}, "
            f"history_states={self.history_states})"
        )


def init_agent(
    action_model: ActionModel,
    save_history: bool | str | Sequence[str] = False,
    random_seed: int | None = None,
) -> Agent:
    """Create an agent from an action model.

    Parameters
    ----------
    action_model
        The action model.
    save_history : optional
        Which states to record: True for all states (including the submodel's),
        False for none, or one or more state names. Actions are always recorded.
        Defaults to False.
    random_seed : optional
        Seed for sampling actions.

    Returns
    -------
    Agent
        An agent in its initial state.
    """
    if save_history is True:
        history_states = action_model.state_names
    elif save_history is False:
        history_states = []
    elif isinstance(save_history, str):
        history_states = [save_history]
    else:
        history_states = list(save_history)

    _logger.debug("Initializing agent recording states %s.", history_states)

    return Agent(action_model, history_states, random_seed=random_seed)


def _as_tuple(distributions: Any) -> tuple:
    if isinstance(distributions, (tuple, list)):
        return tuple(distributions)
    return (distributions,)


def _snapshot(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.copy()
    if isinstance(value, jax.Array):
        return np.asarray(value)
    return value
