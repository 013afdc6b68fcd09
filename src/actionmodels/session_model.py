"""The per-session log-density of an action model.

For every session, the action model is reset with that session's parameters, and the
step function is run over the session's observations in order. Observed actions are
scored under the returned distributions. Missing actions are either skipped or
filled in with latent values, depending on the `MissingActions` policy.

Evaluation is eager JAX, so step functions may use Python control flow and may raise
`RejectParameters`. Whether a rejection zeroes out the joint probability or aborts the
run is decided by `catch_rejections`. Rejections are passed around as `Rejected`
values, never caught above the step function.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from .action_model import FITTING, SIMULATION, ActionModel, RejectParameters
from .action_model.specs import AttributeType, load_type
from .data import Session, SessionBatch
from .defaults import MissingActions
from .distribution_utils import make_vjp_func

_logger = logging.getLogger("actionmodels")


@dataclass(frozen=True)
class Rejected:
    """The outcome of a session whose parameters were rejected.

    Parameters
    ----------
    session_id
        The id of the session.
    timestep
        The timestep at which the step function rejected the parameters.
    reason
        The message of the rejection.
    """

    session_id: str
    timestep: int
    reason: str


SessionResult = jax.Array | Rejected


class SessionModel:
    """Computes log-densities of observed actions, one session at a time.

    Parameters
    ----------
    action_model
        The action model.
    sessions
        The sessions to evaluate.
    parameter_names
        The names of the estimated parameters, in the column order of the session
        parameter matrix.
    missing_actions : optional
        How missing actions are handled, as a `MissingActions` or its value. Defaults
        to `MissingActions.NONE`.
    catch_rejections : optional
        If True, a `RejectParameters` raised in any session makes the joint
        log-density negative infinity. If False, the exception propagates.
        Defaults to False.
    fixed_parameters : optional
        Values for parameters that are not estimated, overriding the action model
        defaults.

    Raises
    ------
    ValueError
        If the missing-action policy does not fit the data or the action types.
    """

    def __init__(
        self,
        action_model: ActionModel,
        sessions: SessionBatch,
        parameter_names: Sequence[str],
        missing_actions: MissingActions | str = MissingActions.NONE,
        catch_rejections: bool = False,
        fixed_parameters: dict[str, Any] | None = None,
    ):
        self.action_model = action_model
        self.sessions = sessions
        self.parameter_names = list(parameter_names)
        self.missing_actions = MissingActions(missing_actions)
        self.catch_rejections = catch_rejections
        self.fixed_parameters = dict(fixed_parameters or {})

        self._observation_loaders = [
            load_type(spec.type, SIMULATION)
            for spec in action_model.observations.values()
        ]
        self._action_types = [spec.type for spec in action_model.actions.values()]
        self.latent_index = self._index_latent_actions()

        if len(sessions.action_cols) != len(action_model.actions):
            raise ValueError(
                f"The data has {len(sessions.action_cols)} action column(s), but the "
                f"action model has {len(action_model.actions)} action(s)."
            )
        if len(sessions.observation_cols) != len(action_model.observations):
            raise ValueError(
                f"The data has {len(sessions.observation_cols)} observation "
                f"column(s), but the action model has "
                f"{len(action_model.observations)} observation(s)."
            )

    @property
    def n_latent(self) -> int:
        """The number of latent missing actions."""
        return len(self.latent_index)

    def _index_latent_actions(self) -> dict[tuple[int, int, int], int]:
        """Assign a position in the latent vector to every missing action."""
        missing = [
            (s, t, k)
            for s, session in enumerate(self.sessions)
            for t, k in session.missing_actions
        ]
        if not missing:
            return {}

        if self.missing_actions is MissingActions.NONE:
            raise ValueError(
                f"There are {len(missing)} missing actions in the data. Choose to "
                "skip or infer missing actions."
            )

        if self.missing_actions is MissingActions.SKIP:
            warnings.warn(
                f"Skipping {len(missing)} missing action(s). The observations at "
                "these timesteps are still passed to the action model, but the "
                "unconditioned actions may not match what later timesteps expect.",
                UserWarning,
                stacklevel=3,
            )
            return {}

        unsupported = {
            self.action_model.action_names[k]
            for _, _, k in missing
            if self._action_types[k] is not AttributeType.REAL
        }
        if unsupported:
            raise ValueError(
                "Only missing actions of univariate continuous type can be inferred. "
                f"Missing values found for action(s) {', '.join(sorted(unsupported))}."
            )
        return {cell: i for i, cell in enumerate(missing)}

    def bind_parameters(self, attributes, theta_row) -> None:
        """Set fixed and estimated parameters on attributes and reset them."""
        if self.fixed_parameters:
            attributes.set_parameters(self.fixed_parameters)
        attributes.set_parameters(
            {name: theta_row[j] for j, name in enumerate(self.parameter_names)}
        )
        attributes.reset()

    def session_logp(
        self, index: int, theta_row: Any, latents: Any
    ) -> SessionResult:
        """Compute the log-density of one session's actions.

        Parameters
        ----------
        index
            The position of the session in the batch.
        theta_row
            The estimated parameters of the session.
        latents
            The vector of latent missing actions of all sessions.

        Returns
        -------
        jax.Array | Rejected
            The summed log-density, or a `Rejected` if the step function rejected the
            parameters and rejections are caught.
        """
        session = self.sessions[index]
        attributes = self.action_model.initialize_attributes(FITTING)
        self.bind_parameters(attributes, theta_row)

        logp = jnp.zeros(())
        for t, (observations, actions) in enumerate(
            zip(session.observations, session.actions)
        ):
            distributions = self._step(attributes, session, t, observations)
            if isinstance(distributions, Rejected):
                return distributions

            for k, (name, distribution, action) in enumerate(
                zip(self.action_model.action_names, distributions, actions)
            ):
                if action is not None:
                    attributes.store_action(name, action)
                    value = attributes.get_actions(name)
                    logp = logp + jnp.sum(distribution.log_prob(value))
                elif self.missing_actions is MissingActions.INFER:
                    value = latents[self.latent_index[(index, t, k)]]
                    logp = logp + jnp.sum(distribution.log_prob(value))
                    attributes.store_action(name, value)
                else:
                    attributes.store_action(name, None)

        return logp

    def _step(
        self, attributes, session: Session, t: int, observations: tuple
    ) -> tuple | Rejected:
        values = [
            loader(value)
            for loader, value in zip(self._observation_loaders, observations)
        ]
        try:
            distributions = self.action_model.step(attributes, *values)
        except RejectParameters as exc:
            if self.catch_rejections:
                return Rejected(session.session_id, t, str(exc))
            exc.add_note(
                f"Parameters rejected in session '{session.session_id}' at "
                f"timestep {t}."
            )
            raise
        except Exception as exc:
            exc.add_note(f"Raised in session '{session.session_id}' at timestep {t}.")
            raise

        if not isinstance(distributions, (tuple, list)):
            distributions = (distributions,)
        if len(distributions) != len(self._action_types):
            raise ValueError(
                f"The step function returned {len(distributions)} distribution(s) in "
                f"session '{session.session_id}' at timestep {t}, but the action "
                f"model has {len(self._action_types)} action(s)."
            )
        return tuple(distributions)

    def logp(self, theta: Any, latents: Any) -> jax.Array:
        """Compute the log-density of every session.

        Sessions are evaluated one after another. Each has its own attributes, so the
        order does not change the result.

        Parameters
        ----------
        theta
            The (session x parameter) matrix.
        latents
            The vector of latent missing actions.

        Returns
        -------
        jax.Array
            One log-density per session. If any session was rejected, every entry is
            negative infinity.
        """
        results = [
            self.session_logp(index, theta[index], latents)
            for index in range(self.sessions.n_sessions)
        ]

        rejected = [result for result in results if isinstance(result, Rejected)]
        if rejected:
            first = rejected[0]
            _logger.debug(
                "Parameters rejected in %d session(s), first in '%s' at timestep %d: "
                "%s",
                len(rejected),
                first.session_id,
                first.timestep,
                first.reason,
            )
            return jnp.full(self.sessions.n_sessions, -jnp.inf)

        return jnp.stack(results)

    def make_logp_funcs(self, jit: bool = False):
        """Make the log-density function and its VJP.

        Parameters
        ----------
        jit : optional
            Compile both functions with `jax.jit`. Only possible for step functions
            without Python control flow on parameter values, and without
            `RejectParameters`. Defaults to False.

        Returns
        -------
        tuple
            The logp function and its VJP, both taking NumPy arrays.
        """
        logp = self.logp
        vjp_logp = make_vjp_func(logp)

        if jit:
            return jax.jit(logp), jax.jit(vjp_logp)
        return logp, vjp_logp

    def forward(
        self,
        index: int,
        theta_row: np.ndarray,
        latents: np.ndarray | None = None,
        state_names: Sequence[str] = (),
        rng_key: jax.Array | None = None,
    ) -> dict[str, list[Any]]:
        """Re-run one session with plain values and record state trajectories.

        Observed actions are stored as realized actions. Under `MissingActions.SKIP`
        missing actions are stored as None, as when fitting. Otherwise they are taken
        from `latents` when given, or sampled from the step distribution.

        Returns
        -------
        dict[str, list]
            For every requested state, its initial value followed by its value after
            each timestep.
        """
        session = self.sessions[index]
        attributes = self.action_model.initialize_attributes(SIMULATION)
        self.bind_parameters(attributes, [float(v) for v in theta_row])
        if rng_key is None:
            rng_key = jax.random.PRNGKey(0)

        trajectories = {
            name: [_snapshot(attributes.get_states(name))] for name in state_names
        }
        for t, (observations, actions) in enumerate(
            zip(session.observations, session.actions)
        ):
            values = [
                loader(value)
                for loader, value in zip(self._observation_loaders, observations)
            ]
            distributions = self.action_model.step(attributes, *values)
            if not isinstance(distributions, (tuple, list)):
                distributions = (distributions,)

            for k, (name, distribution, action) in enumerate(
                zip(self.action_model.action_names, distributions, actions)
            ):
                # Skipped actions stay None, as in `session_logp`
                if action is None and self.missing_actions is not MissingActions.SKIP:
                    position = self.latent_index.get((index, t, k))
                    if latents is not None and position is not None:
                        action = latents[position]
                    else:
                        rng_key, subkey = jax.random.split(rng_key)
                        action = distribution.sample(subkey)
                attributes.store_action(name, action)

            for name in state_names:
                trajectories[name].append(_snapshot(attributes.get_states(name)))

        return trajectories


def _snapshot(value: Any) -> Any:
    if value is None:
        return np.nan
    return np.array(value, dtype=np.float64)
