import warnings

import pytest

import numpy as np
import pandas as pd
import pymc as pm

from actionmodels import (
    IndependentPopulationModel,
    Regression,
    RegressionPopulationModel,
    SessionBatch,
    SingleSessionPopulationModel,
)
from actionmodels.population import build_design_matrices


def _sessions(n_sessions=5):
    n_timesteps = 2
    ids = np.repeat(np.arange(n_sessions), n_timesteps)
    return SessionBatch.from_dataframe(
        pd.DataFrame(
            {
                "id": ids,
                "group": np.where(ids % 2 == 0, "even", "odd"),
                "condition": (ids >= 2).astype(float),
                "observation": np.ones(n_sessions * n_timesteps),
                "report": np.zeros(n_sessions * n_timesteps),
            }
        ),
        observation_cols=["observation"],
        action_cols=["report"],
        session_cols=["id"],
    )


def test_intercept_only_regression_is_shared_by_all_sessions():
    population = RegressionPopulationModel(
        Regression(
            "learning_rate ~ 1",
            prior={"beta": {"name": "Normal", "mu": 0.0, "sigma": 1.0}},
        )
    )
    draws = population.generate(_sessions(5), draws=20, random_seed=1)

    assert draws.shape == (20, 5, 1)
    np.testing.assert_allclose(draws, np.repeat(draws[:, :1], 5, axis=1))
    assert np.std(draws[:, 0, 0]) > 0


def test_regression_with_covariate():
    population = RegressionPopulationModel("rate ~ 1 + condition")
    sessions = _sessions(4)
    draws = population.generate(sessions, draws=10, random_seed=2)[..., 0]

    # Sessions 2 and 3 share the condition, 0 and 1 share the baseline
    np.testing.assert_allclose(draws[:, 0], draws[:, 1])
    np.testing.assert_allclose(draws[:, 2], draws[:, 3])
    assert not np.allclose(draws[:, 0], draws[:, 2])

    matrices = build_design_matrices(population.regressions[0], sessions.session_data)
    assert matrices.X.shape == (4, 2)
    assert matrices.Z is None


def test_regression_with_group_term():
    regression = Regression("rate ~ 1 + (1 | group)")
    sessions = _sessions(5)
    matrices = build_design_matrices(regression, sessions.session_data)

    assert matrices.X.shape == (5, 1)
    assert matrices.Z.shape == (5, 2)
    assert list(matrices.n_categories.values()) == [2]

    population = RegressionPopulationModel([regression])
    with pm.Model(coords=population.coords(sessions)) as model:
        theta = population.build(sessions)
    names = {rv.name for rv in model.free_RVs}
    assert names == {"rate_beta", "rate_1_group_sigma", "rate_1_group_offset"}

    draws = pm.draw(theta, draws=10, random_seed=3)
    np.testing.assert_allclose(draws[:, 0], draws[:, 2])
    np.testing.assert_allclose(draws[:, 1], draws[:, 3])

    # The default group standard deviation is a half Student-t
    sigma = pm.draw(model["rate_1_group_sigma"], draws=50, random_seed=4)
    assert np.all(np.isfinite(sigma) & (sigma > 0))


def test_regression_link():
    population = RegressionPopulationModel(
        Regression("rate ~ 1 + condition", inv_link="logistic")
    )
    draws = population.generate(_sessions(4), draws=50, random_seed=4)
    assert np.all((draws > 0) & (draws < 1))
    assert population.regressions[0].link.name == "logit"
    assert "link: logit" in repr(population)


def test_regression_errors():
    with pytest.raises(ValueError, match="must have the form"):
        Regression("rate")
    with pytest.raises(ValueError, match="must have the form"):
        Regression("rate ~ ")
    with pytest.raises(ValueError, match="Unknown regression prior"):
        Regression("rate ~ 1", prior={"gamma": "Normal"})
    with pytest.raises(ValueError, match="more than one regression"):
        RegressionPopulationModel(["rate ~ 1", "rate ~ 1 + condition"])
    with pytest.raises(ValueError, match="At least one regression"):
        RegressionPopulationModel([])


def test_independent_population(tracking_model):
    population = IndependentPopulationModel(
        {"rate": {"name": "Beta", "alpha": 2.0, "beta": 2.0}, "noise": "HalfNormal"}
    )
    population.check(tracking_model)
    assert population.parameter_names == ["rate", "noise"]

    draws = population.generate(_sessions(3), draws=30, random_seed=5)
    assert draws.shape == (30, 3, 2)
    assert np.all((draws[..., 0] > 0) & (draws[..., 0] < 1))
    assert np.all(draws[..., 1] > 0)
    # Sessions are drawn independently
    assert not np.allclose(draws[:, 0], draws[:, 1])

    single = population.generate(_sessions(3), random_seed=5)
    assert single.shape == (1, 3, 2)


def test_independent_population_checks(tracking_model):
    with pytest.raises(ValueError, match="At least one parameter"):
        IndependentPopulationModel({})

    with pytest.warns(UserWarning, match="noise have no prior"):
        IndependentPopulationModel({"rate": "Normal"}).check(tracking_model)
    with pytest.warns(UserWarning, match="noise have no prior"):
        RegressionPopulationModel("rate ~ 1").check(tracking_model)

    # Fixed parameters are not reported as missing a prior
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        IndependentPopulationModel({"rate": "Normal"}).check(
            tracking_model, fixed_parameters=["noise"]
        )

    with pytest.raises(ValueError, match="speed do not exist"):
        IndependentPopulationModel({"speed": "Normal"}).check(tracking_model)


def test_bounded_priors():
    population = IndependentPopulationModel(
        {"rate": {"name": "Normal", "mu": 0.5, "sigma": 2.0, "bounds": (0.0, 1.0)}}
    )
    draws = population.generate(_sessions(3), draws=50, random_seed=6)
    assert np.all((draws >= 0) & (draws <= 1))


def test_single_session_population():
    population = SingleSessionPopulationModel({"rate": "Normal", "noise": "HalfNormal"})
    draws = population.generate(_sessions(1), draws=5, random_seed=7)
    assert draws.shape == (5, 1, 2)

    with pytest.raises(ValueError, match="exactly one session, got 3"):
        population.generate(_sessions(3))


def test_coords():
    population = IndependentPopulationModel({"rate": "Normal"})
    assert population.coords(_sessions(2)) == {
        "session": ["id:0", "id:1"],
        "parameter": ["rate"],
    }
