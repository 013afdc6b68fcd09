"""The Rescorla-Wagner learning model.

The expected value is moved towards each observation by a fraction, the learning
rate, of the prediction error. Three variants exist:

- continuous: ``ev += learning_rate * (observation - ev)``, reported with a Normal.
- binary: ``ev += learning_rate * (observation - logistic(ev))``, where ``ev`` is on the
  logit scale, reported with a Bernoulli.
- categorical: one binary update per category on a one-hot coded observation,
  reported with a Categorical over the softmax of the expected values.

The learning rule lives in the `RescorlaWagner` submodel, so that other action models
can reuse it with their own response model.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

import jax
import jax.numpy as jnp
import numpy as np
import numpyro.distributions as dist

from ..action_model import (
    ATTRIBUTE_NOT_FOUND,
    Action,
    ActionModel,
    AttributeType,
    ModelAttributes,
    NumericContext,
    Observation,
    Parameter,
    Submodel,
    SubmodelAttributes,
)
from ..action_model.specs import load_type

RescorlaWagnerType = Literal["continuous", "binary", "categorical"]


class RescorlaWagnerAttributes(SubmodelAttributes):
    """The learning rate, initial value and expected value of one session."""

    def __init__(
        self,
        type: RescorlaWagnerType,
        learning_rate: Any,
        initial_value: Any,
        context: NumericContext,
    ):
        self.type = type
        value_type = (
            AttributeType.REAL_ARRAY if type == "categorical" else AttributeType.REAL
        )
        self._load_rate = load_type(AttributeType.REAL, context)
        self._load_value = load_type(value_type, context)
        self.learning_rate = self._load_rate(learning_rate)
        self.initial_value = self._load_value(initial_value)
        self.expected_value = self._load_value(initial_value)

    def get_parameters(self, name: str | None = None) -> Any:  # noqa: D102
        parameters = {
            "learning_rate": self.learning_rate,
            "initial_value": self.initial_value,
        }
        if name is None:
            return parameters
        return parameters.get(name, ATTRIBUTE_NOT_FOUND)

    def get_states(self, name: str | None = None) -> Any:  # noqa: D102
        if name is None:
            return {"expected_value": self.expected_value}
        if name == "expected_value":
            return self.expected_value
        return ATTRIBUTE_NOT_FOUND

    def set_parameters(self, name: str, value: Any) -> Any:  # noqa: D102
        if name == "learning_rate":
            self.learning_rate = self._load_rate(value)
        elif name == "initial_value":
            self.initial_value = self._load_value(value)
        else:
            return ATTRIBUTE_NOT_FOUND
        return True

    def set_states(self, name: str, value: Any) -> Any:  # noqa: D102
        if name != "expected_value":
            return ATTRIBUTE_NOT_FOUND
        self.expected_value = self._load_value(value)
        return True

    def reset(self) -> None:  # noqa: D102
        self.expected_value = self._load_value(self.initial_value)

    def update(self, observation: Any) -> None:
        """Update the expected value with one observation.

        Continuous models take a real observation and binary models a 0/1 outcome.
        Categorical models take a 0-based category index, a binary vector, or a real
        vector, which is learned without the logistic transform.
        """
        ev = self.expected_value
        rate = self.learning_rate

        if self.type == "continuous":
            new_value = ev + rate * (observation - ev)
        elif self.type == "binary":
            new_value = ev + rate * (observation - jax.nn.sigmoid(ev))
        elif np.ndim(observation) == 0:
            one_hot = (jnp.arange(jnp.shape(ev)[0]) == observation).astype(float)
            new_value = ev + rate * (one_hot - jax.nn.sigmoid(ev))
        elif jnp.issubdtype(jnp.asarray(observation).dtype, jnp.integer):
            new_value = ev + rate * (observation - jax.nn.sigmoid(ev))
        else:
            new_value = ev + rate * (observation - ev)

        self.expected_value = self._load_value(new_value)


@dataclass(frozen=True)
class RescorlaWagner(Submodel):
    """The Rescorla-Wagner learning rule as a submodel.

    Parameters
    ----------
    type : optional
        ``"continuous"``, ``"binary"`` or ``"categorical"``. Defaults to
        ``"continuous"``.
    learning_rate : optional
        The learning rate. Defaults to 0.1.
    initial_value : optional
        The initial expected value. Defaults to 0, or a vector of zeros for
        categorical models.
    n_categories : optional
        The number of categories. Required for categorical models.

    Raises
    ------
    ValueError
        If the type is unknown, or the initial value does not fit the type.
    """

    type: RescorlaWagnerType = "continuous"
    learning_rate: float = 0.1
    initial_value: Any = None
    n_categories: int | None = None

    def __post_init__(self):
        """Check the configuration and fill in the initial value."""
        if self.type not in ("continuous", "binary", "categorical"):
            raise ValueError(
                f"'{self.type}' is not a valid Rescorla-Wagner type. Use "
                "'continuous', 'binary' or 'categorical'."
            )

        initial_value = self.initial_value
        if self.type == "categorical":
            if self.n_categories is None:
                raise ValueError(
                    "Categorical Rescorla-Wagner models need the number of categories "
                    "set with `n_categories`."
                )
            if initial_value is None:
                initial_value = np.zeros(self.n_categories)
            initial_value = np.asarray(initial_value, dtype=float)
            if initial_value.shape != (self.n_categories,):
                raise ValueError(
                    "The initial value must be a vector of length "
                    f"{self.n_categories} for a categorical Rescorla-Wagner model."
                )
        else:
            if initial_value is None:
                initial_value = 0.0
            if np.ndim(initial_value) != 0:
                raise ValueError(
                    "Continuous and binary Rescorla-Wagner models must have a scalar "
                    "initial value."
                )
            initial_value = float(initial_value)
        object.__setattr__(self, "initial_value", initial_value)

    @property
    def value_type(self) -> AttributeType:
        """The type of the initial and expected values."""
        if self.type == "categorical":
            return AttributeType.REAL_ARRAY
        return AttributeType.REAL

    def initialize_attributes(  # noqa: D102
        self, context: NumericContext
    ) -> RescorlaWagnerAttributes:
        return RescorlaWagnerAttributes(
            self.type, self.learning_rate, self.initial_value, context
        )

    def get_parameter_types(self) -> dict[str, Any]:  # noqa: D102
        return {"learning_rate": AttributeType.REAL, "initial_value": self.value_type}

    def get_state_types(self) -> dict[str, Any]:  # noqa: D102
        return {"expected_value": self.value_type}


def gaussian_report(attributes: ModelAttributes):
    """Report the expected value with Gaussian noise."""
    expected_value = attributes.submodel.get_states("expected_value")
    noise = attributes.get_parameters("action_noise")
    return dist.Normal(expected_value, noise)


def binary_report(attributes: ModelAttributes):
    """Choose 1 with the logistic probability of the scaled expected value."""
    expected_value = attributes.submodel.get_states("expected_value")
    noise = attributes.get_parameters("action_noise")
    return dist.Bernoulli(probs=jax.nn.sigmoid(expected_value / noise))


def categorical_report(attributes: ModelAttributes):
    """Choose a category with the softmax of the scaled expected values."""
    expected_value = attributes.submodel.get_states("expected_value")
    noise = attributes.get_parameters("action_noise")
    return dist.Categorical(probs=jax.nn.softmax(expected_value / noise))


_DEFAULT_RESPONSES: dict[str, tuple[Callable, Any, Any]] = {
    "continuous": (gaussian_report, AttributeType.REAL, dist.Normal),
    "binary": (binary_report, AttributeType.INTEGER, dist.Bernoulli),
    "categorical": (categorical_report, AttributeType.INTEGER, dist.Categorical),
}


@dataclass
class RescorlaWagnerConfig:
    """Configuration of a premade Rescorla-Wagner action model.

    Parameters
    ----------
    type : optional
        ``"continuous"``, ``"binary"`` or ``"categorical"``. Defaults to
        ``"continuous"``.
    learning_rate : optional
        The learning rate. Defaults to 0.1.
    initial_value : optional
        The initial expected value.
    n_categories : optional
        The number of categories, for categorical models.
    action_noise : optional
        The noise of the default response model. Defaults to 1.
    act_before_update : optional
        Choose the action from the expected value before it is updated with the
        current observation. Defaults to False.
    response_model : optional
        A function from the model attributes to an action distribution, replacing
        the default response model. Requires ``response_model_actions``.
    response_model_parameters : optional
        The parameters of a custom response model.
    response_model_observations : optional
        The observations of a custom response model. Defaults to one observation.
    response_model_actions : optional
        The actions of a custom response model.
    """

    type: RescorlaWagnerType = "continuous"
    learning_rate: float = 0.1
    initial_value: Any = None
    n_categories: int | None = None
    action_noise: float | None = None
    act_before_update: bool = False
    response_model: Callable | None = None
    response_model_parameters: dict[str, Parameter] = field(default_factory=dict)
    response_model_observations: dict[str, Observation] | None = None
    response_model_actions: dict[str, Action] | None = None

    def validate(self) -> None:
        """Check the response model settings."""
        if self.response_model is None:
            if self.response_model_parameters or self.response_model_actions:
                raise ValueError(
                    "A custom response model has not been provided. Set the action "
                    "noise with `action_noise`."
                )
        else:
            if self.action_noise is not None:
                raise ValueError(
                    "`action_noise` is only used by the default response model. Add "
                    "it to `response_model_parameters` instead."
                )
            if not self.response_model_actions:
                raise ValueError(
                    "A custom response model needs `response_model_actions`."
                )


def rescorla_wagner(**kwargs) -> ActionModel:
    """Create a Rescorla-Wagner action model.

    Parameters
    ----------
    kwargs
        Fields of `RescorlaWagnerConfig`.

    Returns
    -------
    ActionModel
        The action model. With the default response model, it has the parameter
        ``action_noise``, the submodel parameters ``learning_rate`` and
        ``initial_value``, the state ``expected_value``, one observation, and the
        action ``report``.
    """
    config = RescorlaWagnerConfig(**kwargs)
    config.validate()
    submodel = RescorlaWagner(
        type=config.type,
        learning_rate=config.learning_rate,
        initial_value=config.initial_value,
        n_categories=config.n_categories,
    )

    if config.response_model is None:
        response_model, observation_type, family = _DEFAULT_RESPONSES[config.type]
        action_noise = 1.0 if config.action_noise is None else config.action_noise
        parameters = {"action_noise": Parameter(action_noise)}
        observations = {"observation": Observation(observation_type)}
        actions = {"report": Action(family)}
    else:
        response_model = config.response_model
        parameters = dict(config.response_model_parameters)
        observation_type = _DEFAULT_RESPONSES[config.type][1]
        observations = config.response_model_observations or {
            "observation": Observation(observation_type)
        }
        actions = dict(config.response_model_actions)  # type: ignore[arg-type]

    if config.act_before_update:

        def rescorla_wagner_act_before_update(attributes, observation):
            action_distribution = response_model(attributes)
            attributes.submodel.update(observation)
            return action_distribution

        step = rescorla_wagner_act_before_update
    else:

        def rescorla_wagner_act_after_update(attributes, observation):
            attributes.submodel.update(observation)
            return response_model(attributes)

        step = rescorla_wagner_act_after_update

    return ActionModel(
        step,
        parameters=parameters,
        observations=observations,
        actions=actions,
        submodel=submodel,
    )
