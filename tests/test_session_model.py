import pytest

import jax.numpy as jnp
import numpy as np
import numpyro.distributions as dist
from scipy import stats

from actionmodels import (
    Action,
    ActionModel,
    Observation,
    Parameter,
    RejectParameters,
    SessionBatch,
    State,
    load_actions,
    load_parameters,
    load_states,
    update_state,
)
from actionmodels.defaults import MissingActions
from actionmodels.session_model import Rejected, SessionModel

NO_LATENTS = jnp.zeros(0)


def _tracking_logp(observations, actions, rate=0.5, noise=1.0):
    mean, logp = 0.0, 0.0
    for observation, action in zip(observations, actions):
        mean = mean + rate * (observation - mean)
        if action is not None:
            logp += stats.norm.logpdf(action, mean, noise)
    return logp


def test_rescorla_wagner_logp(rw_model):
    sessions = SessionBatch.from_sequences([1.0, 1.0], [0.3, 0.51])
    session_model = SessionModel(rw_model, sessions, ["learning_rate"])

    logp = session_model.logp(np.array([[0.3]]), NO_LATENTS)

    # The reports equal the expected values 0.3 and 0.51
    expected = 2 * stats.norm.logpdf(0.0, 0.0, 0.5)
    assert logp.shape == (1,)
    np.testing.assert_allclose(logp, [expected])


def test_logp_matches_manual_computation(tracking_model, rw_sessions):
    session_model = SessionModel(tracking_model, rw_sessions, ["rate"])
    theta = np.array([[0.5], [0.2], [0.9]])
    logp = session_model.logp(theta, NO_LATENTS)

    expected = [
        _tracking_logp(
            [obs for (obs,) in session.observations],
            [action for (action,) in session.actions],
            rate=rate,
        )
        for session, (rate,) in zip(rw_sessions, theta)
    ]
    np.testing.assert_allclose(logp, expected)


def test_sessions_are_independent_of_order(tracking_model, rw_sessions):
    theta = np.array([[0.5], [0.2], [0.9]])
    logp = SessionModel(tracking_model, rw_sessions, ["rate"]).logp(
        theta, NO_LATENTS
    )

    reordered = SessionBatch(
        sessions=tuple(reversed(rw_sessions.sessions)),
        session_cols=rw_sessions.session_cols,
        observation_cols=rw_sessions.observation_cols,
        action_cols=rw_sessions.action_cols,
    )
    reordered_logp = SessionModel(tracking_model, reordered, ["rate"]).logp(
        theta[::-1], NO_LATENTS
    )
    np.testing.assert_allclose(reordered_logp, logp[::-1])


def test_timestep_order_matters(tracking_model):
    observations, actions = [0.0, 1.0, 3.0], [0.2, 0.4, 2.0]
    forward = SessionBatch.from_sequences(observations, actions)
    backward = SessionBatch.from_sequences(observations[::-1], actions[::-1])
    theta = np.array([[0.5]])

    forward_logp = SessionModel(tracking_model, forward, ["rate"]).logp(
        theta, NO_LATENTS
    )
    backward_logp = SessionModel(tracking_model, backward, ["rate"]).logp(
        theta, NO_LATENTS
    )
    assert not np.allclose(forward_logp, backward_logp)


def test_fixed_parameters(tracking_model):
    sessions = SessionBatch.from_sequences([1.0, 2.0], [0.5, 1.0])
    session_model = SessionModel(
        tracking_model, sessions, ["rate"], fixed_parameters={"noise": 2.0}
    )
    logp = session_model.logp(np.array([[0.5]]), NO_LATENTS)
    expected = _tracking_logp([1.0, 2.0], [0.5, 1.0], noise=2.0)
    np.testing.assert_allclose(logp, [expected])


def test_missing_actions_are_rejected_by_default(tracking_model):
    sessions = SessionBatch.from_sequences([1.0, 2.0], [0.5, None])
    with pytest.raises(ValueError, match="1 missing actions in the data"):
        SessionModel(tracking_model, sessions, ["rate"])


def test_skip_missing_actions(tracking_model):
    observations = [1.0, 2.0, 0.5]
    complete = SessionBatch.from_sequences(observations, [0.4, 1.1, 0.9])
    missing = SessionBatch.from_sequences(observations, [0.4, None, 0.9])

    with pytest.warns(UserWarning, match="Skipping 1 missing action"):
        session_model = SessionModel(
            tracking_model, missing, ["rate"], missing_actions=MissingActions.SKIP
        )
    assert session_model.n_latent == 0

    theta = np.array([[0.5]])
    skipped = session_model.logp(theta, NO_LATENTS)
    full = SessionModel(tracking_model, complete, ["rate"]).logp(theta, NO_LATENTS)

    # The tracking model ignores its actions, so only the skipped term differs
    missing_term = stats.norm.logpdf(1.1, 1.25, 1.0)
    np.testing.assert_allclose(skipped, full - missing_term)


def test_infer_missing_actions(tracking_model):
    observations = [1.0, 2.0, 0.5]
    complete = SessionBatch.from_sequences(observations, [0.4, 1.1, 0.9])
    missing = SessionBatch.from_sequences(observations, [0.4, None, 0.9])

    session_model = SessionModel(
        tracking_model, missing, ["rate"], missing_actions=MissingActions.INFER
    )
    assert session_model.n_latent == 1
    assert session_model.latent_index == {(0, 1, 0): 0}

    theta = np.array([[0.5]])
    inferred = session_model.logp(theta, jnp.array([1.1]))
    full = SessionModel(tracking_model, complete, ["rate"]).logp(theta, NO_LATENTS)
    np.testing.assert_allclose(inferred, full)


def test_discrete_missing_actions_cannot_be_inferred(pvl_model):
    sessions = SessionBatch.from_sequences([(0, 1.0), (1, -1.0)], [0, None])
    with pytest.raises(ValueError, match="univariate continuous"):
        SessionModel(
            pvl_model,
            sessions,
            ["learning_rate"],
            missing_actions=MissingActions.INFER,
        )


def rejecting_step(attributes, observation):
    parameters = load_parameters(attributes)
    if parameters["rate"] > 0.8:
        raise RejectParameters("The rate must not exceed 0.8.")
    mean = load_states(attributes)["mean"]
    update_state(attributes, "mean", mean + parameters["rate"] * (observation - mean))
    return dist.Normal(mean, 1.0)


@pytest.fixture
def rejecting_model():
    return ActionModel(
        rejecting_step,
        parameters={"rate": Parameter(0.5)},
        states={"mean": State(0.0)},
        observations={"observation": Observation()},
        actions={"report": Action(dist.Normal)},
    )


def test_caught_rejections_zero_out_the_joint_probability(
    rejecting_model, rw_sessions
):
    session_model = SessionModel(
        rejecting_model, rw_sessions, ["rate"], catch_rejections=True
    )
    accepted = session_model.logp(np.array([[0.5], [0.5], [0.5]]), NO_LATENTS)
    assert np.all(np.isfinite(accepted))

    # Only the second session is rejected, but every entry becomes -inf
    rejected = session_model.logp(np.array([[0.5], [0.9], [0.5]]), NO_LATENTS)
    assert np.all(np.isneginf(rejected))

    result = session_model.session_logp(1, np.array([0.9]), NO_LATENTS)
    assert result == Rejected("id:b", 0, "The rate must not exceed 0.8.")


def test_uncaught_rejections_propagate(rejecting_model, rw_sessions):
    session_model = SessionModel(rejecting_model, rw_sessions, ["rate"])
    with pytest.raises(RejectParameters, match="must not exceed") as excinfo:
        session_model.logp(np.array([[0.5], [0.9], [0.5]]), NO_LATENTS)
    assert "session 'id:b' at timestep 0" in excinfo.value.__notes__[0]


def test_errors_in_step_functions_are_annotated(tracking_model):
    def broken_step(attributes, observation):
        raise ZeroDivisionError("broken")

    model = ActionModel(
        broken_step,
        observations={"observation": Observation()},
        actions={"report": Action(dist.Normal)},
    )
    sessions = SessionBatch.from_sequences([1.0], [1.0], session_id="s1")
    with pytest.raises(ZeroDivisionError) as excinfo:
        SessionModel(model, sessions, []).logp(np.zeros((1, 0)), NO_LATENTS)
    assert "session 's1' at timestep 0" in excinfo.value.__notes__[0]


def test_gradients(tracking_model, rw_sessions):
    session_model = SessionModel(tracking_model, rw_sessions, ["rate", "noise"])
    logp, logp_vjp = session_model.make_logp_funcs()
    theta = np.array([[0.5, 1.0], [0.2, 0.5], [0.9, 2.0]])

    values = logp(theta, NO_LATENTS)
    grad_theta, grad_latents = logp_vjp(theta, NO_LATENTS, gz=jnp.ones(3))

    assert values.shape == (3,)
    assert grad_theta.shape == theta.shape
    assert grad_latents.shape == (0,)
    assert np.all(np.isfinite(grad_theta))

    # Compare with a finite difference in the rate of the first session
    eps = 1e-6
    shifted = theta.copy()
    shifted[0, 0] += eps
    numeric = (logp(shifted, NO_LATENTS)[0] - values[0]) / eps
    assert float(grad_theta[0, 0]) == pytest.approx(float(numeric), rel=1e-4)


def test_column_counts_must_match(tracking_model, pvl_model, rw_sessions):
    with pytest.raises(ValueError, match="observation column"):
        SessionModel(pvl_model, rw_sessions, ["learning_rate"])

    sessions = SessionBatch.from_sequences([1.0], [(1.0, 2.0)])
    with pytest.raises(ValueError, match="2 action column"):
        SessionModel(tracking_model, sessions, ["rate"])


def test_forward(tracking_model):
    sessions = SessionBatch.from_sequences([1.0, 1.0, 1.0], [0.0, None, 0.0])
    with pytest.warns(UserWarning):
        session_model = SessionModel(
            tracking_model, sessions, ["rate"], missing_actions="skip"
        )

    trajectories = session_model.forward(0, np.array([0.5]), state_names=["mean"])
    np.testing.assert_allclose(trajectories["mean"], [0.0, 0.5, 0.75, 0.875])


def anchoring_step(attributes, observation):
    previous = load_actions(attributes)["report"]
    anchor = 0.0 if previous is None else previous
    update_state(attributes, "anchor", anchor)
    return dist.Normal(anchor + observation, load_parameters(attributes)["noise"])


def test_forward_skips_missing_actions_like_the_likelihood():
    anchoring_model = ActionModel(
        anchoring_step,
        parameters={"noise": Parameter(1.0)},
        states={"anchor": State(0.0)},
        observations={"observation": Observation()},
        actions={"report": Action(dist.Normal)},
    )
    sessions = SessionBatch.from_sequences([0.0, 0.0, 0.0], [5.0, None, 5.0])
    with pytest.warns(UserWarning, match="Skipping 1 missing action"):
        session_model = SessionModel(
            anchoring_model, sessions, ["noise"], missing_actions="skip"
        )

    # The step after the skipped action sees no previous action
    logp = session_model.logp(np.array([[1.0]]), NO_LATENTS)
    np.testing.assert_allclose(logp, [2 * stats.norm.logpdf(5.0, 0.0, 1.0)])

    trajectories = session_model.forward(
        0, np.array([1.0]), state_names=["anchor"]
    )
    np.testing.assert_allclose(trajectories["anchor"], [0.0, 0.0, 5.0, 0.0])
