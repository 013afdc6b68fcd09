import logging

import pytest

import jax.numpy as jnp
import numpy as np
import numpyro.distributions as dist

from actionmodels import (
    FITTING,
    SIMULATION,
    Action,
    ActionModel,
    AttributeNotFoundError,
    InitialStateParameter,
    Observation,
    Parameter,
    State,
)
from actionmodels.action_model import AttributeType


def tracking_step(attributes, observation):
    return dist.Normal(0.0, 1.0)


def test_parameter_types():
    assert Parameter(1.0).type is AttributeType.REAL
    assert Parameter(1).type is AttributeType.INTEGER
    assert Parameter(1.0, discrete=True).type is AttributeType.INTEGER
    assert Parameter(np.zeros(3)).type is AttributeType.REAL_ARRAY
    assert Parameter(np.array([1, 2])).type is AttributeType.INTEGER_ARRAY
    # Integers can be stored as reals
    assert Parameter(1, type=float).type is AttributeType.REAL

    with pytest.raises(ValueError, match="not compatible with the declared type"):
        Parameter(np.zeros(2), type=float)


def test_state_types():
    assert State().type is AttributeType.REAL
    assert State(type="real_array").type is AttributeType.REAL_ARRAY
    assert State(np.zeros(2)).type is AttributeType.REAL_ARRAY

    with pytest.raises(ValueError, match="must name the state"):
        InitialStateParameter(0.0, "")


def test_action_types():
    assert Action(dist.Normal).type is AttributeType.REAL
    assert Action(dist.Categorical).type is AttributeType.INTEGER
    assert Action(dist.Bernoulli).type is AttributeType.INTEGER
    assert Action(dist.Dirichlet).type is AttributeType.REAL_ARRAY
    assert Action(dist.Normal, type=float).type is AttributeType.REAL

    with pytest.raises(ValueError, match="does not match the support"):
        Action(dist.Normal, type="integer")

    with pytest.raises(ValueError, match="Cannot determine the support"):
        Action(lambda x: x)


def test_action_model_names(tracking_model, rw_model):
    assert tracking_model.parameter_names == ["rate", "noise"]
    assert tracking_model.state_names == ["mean"]
    assert tracking_model.observation_names == ["observation"]
    assert tracking_model.action_names == ["report"]
    assert tracking_model.name == "tracking_step"

    # Submodel attributes are listed after the model's own
    assert rw_model.parameter_names == [
        "action_noise",
        "learning_rate",
        "initial_value",
    ]
    assert rw_model.state_names == ["expected_value"]
    assert rw_model.get_parameter_type("learning_rate") is AttributeType.REAL

    assert "Number of actions: 1" in repr(tracking_model)


def test_action_model_validation():
    normal = {"report": Action(dist.Normal)}

    with pytest.raises(ValueError, match="at least one action"):
        ActionModel(tracking_step, observations={"observation": Observation()})

    with pytest.raises(ValueError, match="which does not exist"):
        ActionModel(
            tracking_step,
            parameters={"start": InitialStateParameter(0.0, "missing")},
            actions=normal,
        )

    with pytest.raises(ValueError, match="initialized by both"):
        ActionModel(
            tracking_step,
            parameters={
                "start": InitialStateParameter(0.0, "mean"),
                "other_start": InitialStateParameter(1.0, "mean"),
            },
            states={"mean": State()},
            actions=normal,
        )

    with pytest.raises(ValueError, match="not compatible with the type"):
        ActionModel(
            tracking_step,
            parameters={"start": InitialStateParameter(np.zeros(2), "mean")},
            states={"mean": State(0.0)},
            actions=normal,
        )

    with pytest.raises(ValueError, match="used more than once"):
        ActionModel(tracking_step, states={"report": State(0.0)}, actions=normal)

    with pytest.raises(ValueError, match="must be one of"):
        ActionModel(
            tracking_step, observations={"observation": Parameter(1.0)}, actions=normal
        )


def test_single_attributes_get_default_names(caplog):
    with caplog.at_level(logging.INFO, logger="actionmodels"):
        model = ActionModel(
            tracking_step, observations=Observation(), actions=Action(dist.Normal)
        )
    assert model.observation_names == ["observation"]
    assert model.action_names == ["action"]
    assert "is given the name 'observation'" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.INFO, logger="actionmodels"):
        ActionModel(tracking_step, actions=Action(dist.Normal), verbose=False)
    assert "is given the name" not in caplog.text


def test_attributes_get_set(tracking_model):
    attributes = tracking_model.initialize_attributes(SIMULATION)

    assert attributes.get_parameters("rate") == 0.5
    assert attributes.get_parameters() == {"rate": 0.5, "noise": 1.0}
    assert attributes.get_states("mean") == 0.0
    assert attributes.get_actions("report") is None

    attributes.set_parameters("rate", 0.2)
    attributes.set_parameters({"noise": 2})
    assert attributes.get_parameters(["rate", "noise"]) == {"rate": 0.2, "noise": 2.0}
    assert isinstance(attributes.get_parameters("noise"), float)

    attributes.store_action("report", 1.5)
    assert attributes.get_actions("report") == 1.5

    with pytest.raises(AttributeNotFoundError, match="no parameter named 'speed'"):
        attributes.get_parameters("speed")
    with pytest.raises(AttributeNotFoundError, match="no state named 'speed'"):
        attributes.set_states("speed", 1.0)
    with pytest.raises(AttributeNotFoundError, match="no action named 'speed'"):
        attributes.store_action("speed", 1.0)


def test_attributes_reset(tracking_model):
    attributes = tracking_model.initialize_attributes(SIMULATION)
    attributes.set_states("mean", 3.0)
    attributes.store_action("report", 1.0)

    attributes.reset()
    first = (attributes.get_states(), attributes.get_actions())
    attributes.reset()
    second = (attributes.get_states(), attributes.get_actions())

    assert first == second == ({"mean": 0.0}, {"report": None})


def test_initial_state_parameter():
    model = ActionModel(
        tracking_step,
        parameters={
            "rate": Parameter(0.5),
            "noise": Parameter(1.0),
            "start": InitialStateParameter(1.5, "mean"),
        },
        states={"mean": State()},
        observations={"observation": Observation()},
        actions={"report": Action(dist.Normal)},
    )
    attributes = model.initialize_attributes(SIMULATION)
    assert attributes.get_states("mean") == 1.5

    attributes.set_parameters("start", -1.0)
    # The state only changes on reset
    assert attributes.get_states("mean") == 1.5
    attributes.reset()
    assert attributes.get_states("mean") == -1.0


def test_array_states_are_copied_on_reset():
    model = ActionModel(
        tracking_step,
        states={"values": State(np.zeros(3))},
        actions={"report": Action(dist.Normal)},
    )
    attributes = model.initialize_attributes(SIMULATION)
    values = attributes.get_states("values")
    values[0] = 5.0
    attributes.reset()
    np.testing.assert_array_equal(attributes.get_states("values"), np.zeros(3))


def test_fitting_context(tracking_model):
    attributes = tracking_model.initialize_attributes(FITTING)
    rate = attributes.get_parameters("rate")
    assert isinstance(rate, jnp.ndarray)
    assert rate.dtype == jnp.float64


def test_submodel_attributes(rw_model):
    attributes = rw_model.initialize_attributes(SIMULATION)

    assert attributes.get_parameters("learning_rate") == 0.3
    assert attributes.get_parameters("action_noise") == 0.5
    assert set(attributes.get_parameters()) == {
        "action_noise",
        "learning_rate",
        "initial_value",
    }

    attributes.set_states("expected_value", 2.0)
    assert attributes.get_states("expected_value") == 2.0
    assert attributes.submodel.get_states("expected_value") == 2.0

    attributes.set_parameters("initial_value", 1.0)
    attributes.reset()
    assert attributes.get_states("expected_value") == 1.0

    with pytest.raises(AttributeNotFoundError):
        attributes.set_parameters("decay", 0.1)
