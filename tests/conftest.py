import pytest

import numpy as np
import numpyro.distributions as dist
import pandas as pd

from actionmodels import (
    Action,
    ActionModel,
    Observation,
    Parameter,
    SessionBatch,
    State,
    load_parameters,
    load_states,
    update_state,
)
from actionmodels.premade import pvl_delta_model, rescorla_wagner


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: tests that sample with MCMC")


# Only useful if running tests serially
def pytest_collection_modifyitems(config, items):
    slow_tests = [item for item in items if "slow" in item.keywords]
    fast_tests = [item for item in items if "slow" not in item.keywords]
    items[:] = fast_tests + slow_tests


def _rw_data():
    rng = np.random.default_rng(42)
    n_sessions, n_timesteps = 3, 6
    return pd.DataFrame(
        {
            "id": np.repeat(["a", "b", "c"], n_timesteps),
            "condition": np.repeat([0.0, 1.0, 1.0], n_timesteps),
            "observation": rng.normal(1.0, 0.5, size=n_sessions * n_timesteps),
            "report": rng.normal(0.5, 0.5, size=n_sessions * n_timesteps),
        }
    )


@pytest.fixture(scope="module")
def rw_model():
    return rescorla_wagner(learning_rate=0.3, initial_value=0.0, action_noise=0.5)


@pytest.fixture
def rw_data():
    return _rw_data()


@pytest.fixture
def rw_sessions():
    return SessionBatch.from_dataframe(
        _rw_data(),
        observation_cols=["observation"],
        action_cols=["report"],
        session_cols=["id"],
    )


@pytest.fixture(scope="module")
def pvl_model():
    return pvl_delta_model(n_options=4, act_before_update=True)


def tracking_step(attributes, observation):
    parameters = load_parameters(attributes)
    mean = load_states(attributes)["mean"]
    mean = mean + parameters["rate"] * (observation - mean)
    update_state(attributes, "mean", mean)
    return dist.Normal(mean, parameters["noise"])


@pytest.fixture(scope="module")
def tracking_model():
    return ActionModel(
        tracking_step,
        parameters={"rate": Parameter(0.5), "noise": Parameter(1.0)},
        states={"mean": State(0.0)},
        observations={"observation": Observation()},
        actions={"report": Action(dist.Normal)},
    )
