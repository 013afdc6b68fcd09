"""The Prospect Valence Learning delta model (PVL-Delta).

A model of learning in tasks such as the Iowa Gambling Task. Rewards are passed
through a prospect-theoretic utility function, the expected value of the chosen
option is moved towards the utility with a delta rule, and options are chosen with a
softmax over the expected values.
"""

from dataclasses import dataclass
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np
import numpyro.distributions as dist

from ..action_model import (
    Action,
    ActionModel,
    AttributeType,
    InitialStateParameter,
    Observation,
    Parameter,
    State,
    load_parameters,
    load_states,
    update_state,
)

# Bounds for choice probabilities, renormalized after clipping
MIN_PROBABILITY = 0.001
MAX_PROBABILITY = 0.999


@dataclass
class PVLDeltaConfig:
    """Configuration of a premade PVL-Delta action model.

    Parameters
    ----------
    n_options
        The number of options, e.g. decks.
    learning_rate : optional
        The learning rate α. Defaults to 0.1.
    action_noise : optional
        The softmax temperature, the inverse of β. Defaults to 1.
    reward_sensitivity : optional
        The exponent A of the utility function. Defaults to 0.5.
    loss_aversion : optional
        The weight w of losses. Defaults to 1.
    initial_value : optional
        The initial expected values. Defaults to zeros.
    act_before_update : optional
        Compute the choice probabilities before learning from the current reward,
        for tasks where the choice and its reward are on the same row. Defaults to
        False.
    """

    n_options: int
    learning_rate: float = 0.1
    action_noise: float = 1.0
    reward_sensitivity: float = 0.5
    loss_aversion: float = 1.0
    initial_value: Any = None
    act_before_update: bool = False

    def __post_init__(self):
        """Fill in and check the initial value."""
        if self.n_options < 1:
            raise ValueError("`n_options` must be a positive integer.")
        if self.initial_value is None:
            self.initial_value = np.zeros(self.n_options)
        self.initial_value = np.asarray(self.initial_value, dtype=float)
        if self.initial_value.shape != (self.n_options,):
            raise ValueError(
                f"The initial value must be a vector of length {self.n_options}."
            )


def choice_probabilities(expected_value, action_noise):
    """Softmax over the expected values, clipped and renormalized."""
    probabilities = jax.nn.softmax(expected_value / action_noise)
    probabilities = jnp.clip(probabilities, MIN_PROBABILITY, MAX_PROBABILITY)
    return probabilities / jnp.sum(probabilities)


def prediction_error(expected_value, chosen_option, reward, parameters):
    """The difference between the utility of the reward and the expected value."""
    # Rewards are observed, so branching on them keeps gradients finite
    if reward > 0:
        utility = reward ** parameters["reward_sensitivity"]
    elif reward < 0:
        utility = -parameters["loss_aversion"] * (
            jnp.abs(reward) ** parameters["reward_sensitivity"]
        )
    else:
        utility = 0.0
    return utility - expected_value[chosen_option]


def _learn(attributes, chosen_option, reward) -> None:
    parameters = load_parameters(attributes)
    expected_value = load_states(attributes)["expected_value"]
    error = prediction_error(expected_value, chosen_option, reward, parameters)
    chosen = jnp.arange(jnp.shape(expected_value)[0]) == chosen_option
    expected_value = jnp.where(
        chosen, expected_value + parameters["learning_rate"] * error, expected_value
    )
    update_state(attributes, "expected_value", expected_value)


def _choose(attributes):
    action_noise = load_parameters(attributes)["action_noise"]
    expected_value = load_states(attributes)["expected_value"]
    return dist.Categorical(probs=choice_probabilities(expected_value, action_noise))


def pvl_delta(attributes, chosen_option, reward):
    """Learn from the reward of the chosen option, then choose the next option."""
    _learn(attributes, chosen_option, reward)
    return _choose(attributes)


def pvl_delta_act_before_update(attributes, chosen_option, reward):
    """Choose an option, then learn from its reward."""
    choice = _choose(attributes)
    _learn(attributes, chosen_option, reward)
    return choice


def pvl_delta_model(**kwargs) -> ActionModel:
    """Create a PVL-Delta action model.

    Parameters
    ----------
    kwargs
        Fields of `PVLDeltaConfig`.

    Returns
    -------
    ActionModel
        The action model, with observations ``chosen_option`` (a 0-based option
        index) and ``reward``, and the action ``choice``.
    """
    config = PVLDeltaConfig(**kwargs)
    step = pvl_delta_act_before_update if config.act_before_update else pvl_delta

    return ActionModel(
        step,
        parameters={
            "learning_rate": Parameter(config.learning_rate),
            "reward_sensitivity": Parameter(config.reward_sensitivity),
            "action_noise": Parameter(config.action_noise),
            "loss_aversion": Parameter(config.loss_aversion),
            "initial_value": InitialStateParameter(
                config.initial_value, "expected_value"
            ),
        },
        states={"expected_value": State(type=AttributeType.REAL_ARRAY)},
        observations={
            "chosen_option": Observation(AttributeType.INTEGER),
            "reward": Observation(AttributeType.REAL),
        },
        actions={"choice": Action(dist.Categorical)},
    )
