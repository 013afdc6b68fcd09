"""Assemble an action model and a population model into a PyMC model, and fit it.

The joint model has two levels. The population model generates the (session x
parameter) matrix, recorded as the ``session_parameters`` deterministic. Each row is
bound to the action model, which is run over the session's observations to compute
the log-density of the observed actions. The per-session log-densities are computed
in JAX, wrapped in a pytensor Op, and added to the model as a potential.
"""

import logging
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

import arviz as az
import cloudpickle as cpickle
import numpy as np
import pandas as pd
import pymc as pm
import pytensor
import pytensor.tensor as pt
from pymc.blocking import DictToArrayBijection, RaveledVars
from pymc.initial_point import make_initial_point_fn
from scipy import optimize

from .action_model import ActionModel
from .action_model.specs import AttributeType
from .config import SamplerConfig, SaveResumeConfig
from .data import SessionBatch
from .data_validator import DataValidator
from .defaults import (
    MISSING_ACTIONS_NAME,
    SESSION_LOGP_NAME,
    SESSION_PARAMETERS_NAME,
    MissingActions,
)
from .distribution_utils import make_jax_logp_ops
from .inference import get_session_parameters, get_state_trajectories, summarize
from .population import PopulationModel
from .save_resume import sample_in_segments
from .session_model import SessionModel

_logger = logging.getLogger("actionmodels")

ExternalSampler = Callable[..., np.ndarray]


@dataclass
class LogpDlogpFunction:
    """The log-density and gradient of a model over a flat vector.

    Parameters
    ----------
    func
        Maps a flat vector in the unconstrained space to the log-density and its
        gradient.
    flatten
        Maps a point (a dict from value variable names to values) to a flat vector.
    unflatten
        Maps a flat vector to a point.
    initial_point
        The flat vector of the model's initial point.
    """

    func: Callable[[np.ndarray], tuple[float, np.ndarray]]
    flatten: Callable[[dict[str, np.ndarray]], np.ndarray]
    unflatten: Callable[[np.ndarray], dict[str, np.ndarray]]
    initial_point: np.ndarray

    def __call__(self, flat: np.ndarray) -> tuple[float, np.ndarray]:
        """Evaluate the log-density and gradient."""
        return self.func(flat)


class ModelFit:
    """A joint population and action model, ready to sample.

    Use `create_model` to create instances.

    Parameters
    ----------
    action_model
        The action model.
    population_model
        The population model over the estimated parameters.
    session_model
        The per-session log-density of the data.
    jit : optional
        Compile the log-density with `jax.jit`. Defaults to False.
    """

    def __init__(
        self,
        action_model: ActionModel,
        population_model: PopulationModel,
        session_model: SessionModel,
        jit: bool = False,
    ):
        self.action_model = action_model
        self.population_model = population_model
        self.session_model = session_model
        self.jit = jit
        self.traces: az.InferenceData | None = None
        self.prior_draws: az.InferenceData | None = None
        self._map_dict: dict[str, np.ndarray] | None = None
        self.model = self._build_model()

    @property
    def sessions(self) -> SessionBatch:
        """The sessions of the data."""
        return self.session_model.sessions

    @property
    def free_var_names(self) -> list[str]:
        """Names of the free random variables of the model."""
        return [rv.name for rv in self.model.free_RVs]

    def _build_model(self) -> pm.Model:
        coords = self.population_model.coords(self.sessions)
        n_latent = self.session_model.n_latent
        if n_latent:
            coords["missing_action"] = list(range(n_latent))

        logp, logp_vjp = self.session_model.make_logp_funcs(jit=self.jit)
        session_logp_op = make_jax_logp_ops(logp, logp_vjp)

        with pm.Model(coords=coords) as model:
            theta = self.population_model.build(self.sessions)
            theta = pm.Deterministic(
                SESSION_PARAMETERS_NAME, theta, dims=("session", "parameter")
            )
            if n_latent:
                latents = pm.Flat(MISSING_ACTIONS_NAME, dims="missing_action")
            else:
                latents = pt.zeros((0,), dtype=pytensor.config.floatX)
            pm.Potential(
                SESSION_LOGP_NAME, session_logp_op(theta, latents), dims="session"
            )

        _logger.debug(
            "Built model with free variables %s.", [rv.name for rv in model.free_RVs]
        )
        return model

    def logp_dlogp_function(self) -> LogpDlogpFunction:
        """Return the log-density and gradient over a flat unconstrained vector.

        This is the interface to samplers outside PyMC.
        """
        point = self.model.initial_point()
        raveled = DictToArrayBijection.map(point)
        logp_fn = self.model.compile_logp()
        dlogp_fn = self.model.compile_dlogp()

        def unflatten(flat: np.ndarray) -> dict[str, np.ndarray]:
            return DictToArrayBijection.rmap(
                RaveledVars(np.asarray(flat), raveled.point_map_info), start_point=point
            )

        def flatten(values: dict[str, np.ndarray]) -> np.ndarray:
            names = [info[0] for info in raveled.point_map_info]
            return DictToArrayBijection.map({name: values[name] for name in names}).data

        def func(flat: np.ndarray) -> tuple[float, np.ndarray]:
            values = unflatten(flat)
            return float(logp_fn(values)), np.asarray(dlogp_fn(values))

        return LogpDlogpFunction(func, flatten, unflatten, raveled.data)

    def _constrained_fn(self) -> Callable[[dict], dict[str, np.ndarray]]:
        """Map a point in the unconstrained space to variables and deterministics."""
        outputs = self.model.unobserved_value_vars
        fn = self.model.compile_fn(
            outputs, inputs=self.model.value_vars, on_unused_input="ignore"
        )
        names = [var.name for var in outputs]

        def constrained(values: dict) -> dict[str, np.ndarray]:
            return dict(zip(names, fn(values)))

        return constrained

    def find_MAP(self, **kwargs) -> dict[str, np.ndarray]:
        """Perform maximum a posteriori estimation.

        Returns
        -------
        dict
            The MAP estimates of the free variables.
        """
        kwargs.setdefault("progressbar", False)
        estimate = pm.find_MAP(model=self.model, **kwargs)
        self._map_dict = {name: estimate[name] for name in self.free_var_names}
        return self._map_dict

    def find_MLE(self, **kwargs) -> dict[str, np.ndarray]:
        """Perform maximum likelihood estimation, ignoring the priors.

        Parameters
        ----------
        kwargs
            Passed to `scipy.optimize.minimize`.

        Returns
        -------
        dict
            The estimates of the free variables.
        """
        model = self.model
        potential = model[SESSION_LOGP_NAME]
        cost = model.logp(vars=[potential], jacobian=False)
        grads = pytensor.grad(cost, model.value_vars, disconnected_inputs="ignore")
        fn = model.compile_fn(
            [cost, *grads], inputs=model.value_vars, on_unused_input="ignore"
        )

        start = model.initial_point()
        raveled = DictToArrayBijection.map(start)

        def neg_logp(flat):
            values = DictToArrayBijection.rmap(
                RaveledVars(flat, raveled.point_map_info), start_point=start
            )
            outputs = fn(values)
            grad = np.concatenate([np.ravel(g) for g in outputs[1:]])
            return -float(outputs[0]), -grad

        kwargs.setdefault("method", "L-BFGS-B")
        result = optimize.minimize(neg_logp, raveled.data, jac=True, **kwargs)
        if not result.success:
            _logger.warning("Maximum likelihood estimation: %s", result.message)

        estimate = DictToArrayBijection.rmap(
            RaveledVars(result.x, raveled.point_map_info), start_point=start
        )
        values = self._constrained_fn()(estimate)
        return {name: values[name] for name in self.free_var_names}

    def _initial_values(self, config: SamplerConfig) -> list[dict[str, Any]]:
        if config.init == "map":
            if self._map_dict is None:
                _logger.info("Running MAP estimation for initial values.")
                self.find_MAP()
            return [dict(self._map_dict) for _ in range(config.chains)]  # type: ignore
        if config.init == "mle":
            _logger.info("Running maximum likelihood estimation for initial values.")
            estimate = self.find_MLE()
            return [dict(estimate) for _ in range(config.chains)]

        names = [name for name in self.free_var_names if name != MISSING_ACTIONS_NAME]
        if not names:
            return [{} for _ in range(config.chains)]
        with self.model:
            prior = pm.sample_prior_predictive(
                draws=config.chains, var_names=names, random_seed=config.random_seed
            )
        return [
            {name: prior.prior[name].isel(chain=0, draw=i).values for name in names}
            for i in range(config.chains)
        ]

    def _check_initial_point(self, initvals: dict[str, Any]) -> None:
        point = make_initial_point_fn(
            model=self.model, overrides=initvals, return_transformed=True
        )(0)
        logp = self.model.compile_logp()(point)
        dlogp = self.model.compile_dlogp()(point)
        if not np.isfinite(logp) or not np.all(np.isfinite(dlogp)):
            warnings.warn(
                f"The log-density at the initial point is {logp}, and its gradient is "
                "not finite everywhere. Sampling will likely fail. Consider tighter "
                "priors or another init strategy.",
                UserWarning,
                stacklevel=3,
            )

    def sample_posterior(
        self,
        config: SamplerConfig | None = None,
        resample: bool = False,
        save_resume: SaveResumeConfig | None = None,
        sampler: ExternalSampler | None = None,
        **kwargs,
    ) -> az.InferenceData:
        """Sample from the posterior.

        Parameters
        ----------
        config : optional
            The sampler settings. If not given, they are built from ``kwargs``.
        resample : optional
            Sample again even if the model has already been sampled. Defaults to
            False, which returns the stored draws.
        save_resume : optional
            Save draws in segments, and resume from segments already on disk.
        sampler : optional
            An external sampler, called as ``sampler(logp_dlogp, initial_points,
            draws=..., tune=..., random_seed=...)`` where ``initial_points`` has one
            flat vector per chain. It must return an array of shape (chains, draws,
            n) of flat vectors.
        kwargs
            Fields of `SamplerConfig`, used when ``config`` is not given.

        Returns
        -------
        az.InferenceData
            The posterior draws, also stored as `traces`.
        """
        if self.traces is not None and not resample:
            _logger.info(
                "The model has already been sampled. Returning the stored draws. Set "
                "`resample=True` to sample again."
            )
            return self.traces

        config = config if config is not None else SamplerConfig(**kwargs)
        config.validate()

        initvals = self._initial_values(config)
        self._check_initial_point(initvals[0])

        if sampler is not None:
            traces = self._sample_external(sampler, config, initvals)
        elif save_resume is not None:
            traces = sample_in_segments(
                self._make_segment_sampler(config),
                save_resume,
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                var_names=self.free_var_names,
            )
        else:
            _logger.info(
                "Sampling %d chain(s) of %d draws after %d tuning steps.",
                config.chains,
                config.draws,
                config.tune,
            )
            traces = pm.sample(
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                cores=config.cores,
                random_seed=config.random_seed,
                initvals=initvals,
                model=self.model,
                **config.kwargs,
            )

        self.traces = traces
        return traces

    def _make_segment_sampler(self, config: SamplerConfig):
        n_dims = DictToArrayBijection.map(self.model.initial_point()).data.size

        def sample_segment(segment, draws, tune, initvals, step_size):
            kwargs = dict(config.kwargs)
            seed = None if config.random_seed is None else config.random_seed + segment
            with self.model:
                if step_size is not None:
                    # The mass matrix is not saved, so it restarts from the identity
                    kwargs["step"] = pm.NUTS(
                        step_scale=step_size * n_dims**0.25, adapt_step_size=False
                    )
                return pm.sample(
                    draws=draws,
                    tune=tune,
                    chains=config.chains,
                    cores=config.cores,
                    random_seed=seed,
                    initvals=initvals,
                    **kwargs,
                )

        return sample_segment

    def _sample_external(
        self,
        sampler: ExternalSampler,
        config: SamplerConfig,
        initvals: list[dict[str, Any]],
    ) -> az.InferenceData:
        logp_dlogp = self.logp_dlogp_function()
        starts = [
            logp_dlogp.flatten(
                make_initial_point_fn(
                    model=self.model, overrides=values, return_transformed=True
                )(0)
            )
            for values in initvals
        ]
        _logger.info("Sampling %d chain(s) with an external sampler.", len(starts))
        flat_draws = np.asarray(
            sampler(
                logp_dlogp,
                starts,
                draws=config.draws,
                tune=config.tune,
                random_seed=config.random_seed,
                **config.kwargs,
            )
        )
        if flat_draws.ndim != 3 or flat_draws.shape[0] != config.chains:
            raise ValueError(
                "The external sampler must return an array of shape (chains, draws, "
                f"n), got {flat_draws.shape}."
            )

        constrained = self._constrained_fn()
        points = [
            [constrained(logp_dlogp.unflatten(flat)) for flat in chain]
            for chain in flat_draws
        ]
        names = [
            name
            for name in points[0][0]
            if not name.endswith("__") and name != SESSION_LOGP_NAME
        ]
        posterior = {
            name: np.stack(
                [np.stack([point[name] for point in chain]) for chain in points]
            )
            for name in names
        }
        dims = {
            name: list(self.model.named_vars_to_dims[name])
            for name in names
            if name in self.model.named_vars_to_dims
        }
        return az.from_dict(
            posterior=posterior,
            coords={key: list(value) for key, value in self.model.coords.items()},
            dims=dims,
        )

    def sample_prior(
        self, draws: int = 500, random_seed: int | None = None
    ) -> az.InferenceData:
        """Draw from the prior by ancestral sampling.

        Returns
        -------
        az.InferenceData
            Draws in the ``prior`` group, also stored as `prior_draws`.
        """
        names = [name for name in self.free_var_names if name != MISSING_ACTIONS_NAME]
        names.append(SESSION_PARAMETERS_NAME)
        with self.model:
            self.prior_draws = pm.sample_prior_predictive(
                draws=draws, var_names=names, random_seed=random_seed
            )
        return self.prior_draws

    def _draws(self, draws: az.InferenceData | None, group: str) -> az.InferenceData:
        if draws is not None:
            return draws
        stored = self.prior_draws if group == "prior" else self.traces
        if stored is None:
            raise ValueError(
                "Please sample the model first, or pass the draws to summarize."
            )
        return stored

    def get_session_parameters(
        self, draws: az.InferenceData | None = None, group: str = "posterior"
    ):
        """Return session parameters with dims (session, parameter, draw, chain)."""
        return get_session_parameters(self._draws(draws, group), self.sessions, group)

    def get_state_trajectories(
        self,
        draws: az.InferenceData | None = None,
        state_names: Sequence[str] | None = None,
        group: str = "posterior",
        random_seed: int | None = None,
    ):
        """Return state trajectories with dims (session, state, timestep, draw, chain).

        See `actionmodels.inference.get_state_trajectories`.
        """
        return get_state_trajectories(
            self._draws(draws, group),
            self.session_model,
            state_names=state_names,
            group=group,
            random_seed=random_seed,
        )

    def summarize(self, quantity=None, statistic: Callable = np.median) -> pd.DataFrame:
        """Summarize session parameters, or another generated quantity."""
        if quantity is None:
            quantity = self.get_session_parameters()
        return summarize(quantity, statistic=statistic)

    def save(self, path: str | Path) -> None:
        """Pickle the fit, including its draws, to ``path``."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            cpickle.dump(self, f)
        _logger.info("Saved the fit to %s.", path)

    def __repr__(self) -> str:
        """Return a summary of the fit."""
        return "\n".join(
            [
                "-- ModelFit --",
                f"Action model: {self.action_model.name}",
                f"Population model: {self.population_model!r}",
                f"Sessions: {self.sessions.n_sessions}",
                f"Missing actions: {self.session_model.missing_actions.value}",
                f"Sampled: {self.traces is not None}",
            ]
        )


def load_fit(path: str | Path) -> ModelFit:
    """Load a fit saved with `ModelFit.save`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No saved fit at {path}.")
    with open(path, "rb") as f:
        return cpickle.load(f)


def create_model(
    action_model: ActionModel,
    population_model: PopulationModel,
    data: pd.DataFrame | SessionBatch,
    observation_cols: Sequence[str] = (),
    action_cols: Sequence[str] = (),
    session_cols: Sequence[str] = (),
    missing_actions: MissingActions | str = MissingActions.NONE,
    catch_rejections: bool = False,
    fixed_parameters: dict[str, Any] | None = None,
    jit: bool = False,
) -> ModelFit:
    """Create the joint model of an action model, a population model and data.

    Parameters
    ----------
    action_model
        The action model.
    population_model
        The population model over the estimated parameters.
    data
        A dataframe with one row per timestep, or a `SessionBatch`.
    observation_cols : optional
        The observation columns, in the order of the action model's observations.
    action_cols : optional
        The action columns, in the order of the action model's actions. Defaults to
        the action names of the action model.
    session_cols : optional
        The columns whose value combinations define sessions. Required for
        dataframes.
    missing_actions : optional
        ``"none"``, ``"skip"`` or ``"infer"``. Defaults to ``"none"``.
    catch_rejections : optional
        Make the joint log-density negative infinity when the step function raises
        `RejectParameters`, instead of stopping. Defaults to False.
    fixed_parameters : optional
        Values of parameters that are not estimated.
    jit : optional
        Compile the log-density with `jax.jit`. Defaults to False.

    Returns
    -------
    ModelFit
        The joint model.

    Raises
    ------
    ValueError
        If the data, the population model and the action model do not fit together.
    """
    missing_actions = MissingActions(missing_actions)

    if isinstance(data, SessionBatch):
        sessions = data
    else:
        action_cols = list(action_cols) or action_model.action_names
        DataValidator(
            data, observation_cols, action_cols, session_cols, missing_actions
        ).validate()
        sessions = SessionBatch.from_dataframe(
            data, observation_cols, action_cols, session_cols
        )

    fixed_parameters = dict(fixed_parameters or {})
    population_model.check(action_model, fixed_parameters)
    parameter_names = population_model.parameter_names
    for name in parameter_names:
        parameter_type = action_model.get_parameter_type(name)
        if parameter_type is not AttributeType.REAL:
            raise ValueError(
                f"The parameter '{name}' has type {parameter_type}. Only scalar "
                "continuous parameters can be estimated."
            )

    estimated_and_fixed = sorted(set(fixed_parameters) & set(parameter_names))
    if estimated_and_fixed:
        raise ValueError(
            f"Parameter(s) {', '.join(estimated_and_fixed)} cannot be both estimated "
            "and fixed."
        )
    unknown = sorted(set(fixed_parameters) - set(action_model.parameter_names))
    if unknown:
        raise ValueError(
            f"Fixed parameter(s) {', '.join(unknown)} do not exist in the action model."
        )

    session_model = SessionModel(
        action_model,
        sessions,
        parameter_names,
        missing_actions=missing_actions,
        catch_rejections=catch_rejections,
        fixed_parameters=fixed_parameters,
    )
    _logger.info(
        "Created a model of %d session(s) estimating %s.",
        sessions.n_sessions,
        ", ".join(parameter_names),
    )
    return ModelFit(action_model, population_model, session_model, jit=jit)
