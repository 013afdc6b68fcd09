"""Generated quantities and summaries of posterior or prior draws.

Session parameters are read from the ``session_parameters`` deterministic. State
trajectories are recomputed by running every session forward once per draw, since the
sampler only tracks the parameters.
"""

import logging
from typing import Callable, Sequence

import arviz as az
import jax
import numpy as np
import pandas as pd
import xarray as xr

from .data import SessionBatch
from .defaults import MISSING_ACTIONS_NAME, SESSION_PARAMETERS_NAME
from .session_model import SessionModel

_logger = logging.getLogger("actionmodels")


def _group_attrs(sessions: SessionBatch) -> dict:
    return {
        "session_cols": list(sessions.session_cols),
        "group_values": [list(session.group_values) for session in sessions],
        "n_timesteps": [session.n_timesteps for session in sessions],
    }


def _get_group(draws: az.InferenceData, group: str) -> xr.Dataset:
    if group not in draws.groups():
        raise ValueError(f"The draws have no `{group}` group.")
    return draws[group]


def get_session_parameters(
    draws: az.InferenceData, sessions: SessionBatch, group: str = "posterior"
) -> xr.DataArray:
    """Extract the session parameters from draws.

    Parameters
    ----------
    draws
        Draws from `ModelFit.sample_posterior` or `ModelFit.sample_prior`.
    sessions
        The sessions of the fit.
    group : optional
        The group of ``draws`` to read. Defaults to ``"posterior"``.

    Returns
    -------
    xr.DataArray
        An array with dims (session, parameter, draw, chain).
    """
    data = _get_group(draws, group)
    if SESSION_PARAMETERS_NAME not in data:
        raise ValueError(
            f"The `{group}` group has no `{SESSION_PARAMETERS_NAME}` variable."
        )
    parameters = data[SESSION_PARAMETERS_NAME].transpose(
        "session", "parameter", "draw", "chain"
    )
    return parameters.assign_attrs(**_group_attrs(sessions))


def _state_labels(trajectories: dict[str, list]) -> list[tuple[str, int | None]]:
    labels: list[tuple[str, int | None]] = []
    for name, values in trajectories.items():
        size = max(np.size(value) for value in values)
        if all(np.ndim(value) == 0 for value in values):
            labels.append((name, None))
        else:
            labels.extend((name, i) for i in range(size))
    return labels


def get_state_trajectories(
    draws: az.InferenceData,
    session_model: SessionModel,
    state_names: Sequence[str] | None = None,
    group: str = "posterior",
    random_seed: int | None = None,
) -> xr.DataArray:
    """Recompute state trajectories by running the sessions forward for every draw.

    Missing actions are taken from the latent draws when they were inferred, and
    sampled from the action model otherwise.

    Parameters
    ----------
    draws
        Draws from `ModelFit.sample_posterior` or `ModelFit.sample_prior`.
    session_model
        The session model of the fit.
    state_names : optional
        The states to record. Defaults to all states of the action model.
    group : optional
        The group of ``draws`` to read. Defaults to ``"posterior"``.
    random_seed : optional
        Seed for sampling missing actions.

    Returns
    -------
    xr.DataArray
        An array with dims (session, state, timestep, draw, chain). Array-valued
        states are split into one entry per element, named ``name[i]``. Timestep 0
        is the initial state. Sessions shorter than the longest one are padded with
        NaN.
    """
    sessions = session_model.sessions
    if state_names is None:
        state_names = session_model.action_model.state_names
    state_names = list(state_names)
    if not state_names:
        raise ValueError("The action model has no states to record.")

    data = _get_group(draws, group)
    theta = get_session_parameters(draws, sessions, group).values
    latents = None
    if MISSING_ACTIONS_NAME in data:
        latents = data[MISSING_ACTIONS_NAME].transpose(..., "draw", "chain").values

    n_sessions, _, n_draws, n_chains = theta.shape
    n_steps = sessions.max_timesteps + 1
    key = jax.random.PRNGKey(np.random.default_rng(random_seed).integers(2**31))

    _logger.info(
        "Computing state trajectories for %d session(s) over %d draw(s).",
        n_sessions,
        n_draws * n_chains,
    )

    labels: list[tuple[str, int | None]] | None = None
    result: np.ndarray | None = None
    for chain in range(n_chains):
        for draw in range(n_draws):
            draw_latents = None if latents is None else latents[:, draw, chain]
            for index in range(n_sessions):
                key, subkey = jax.random.split(key)
                trajectories = session_model.forward(
                    index,
                    theta[index, :, draw, chain],
                    latents=draw_latents,
                    state_names=state_names,
                    rng_key=subkey,
                )
                if labels is None:
                    labels = _state_labels(trajectories)
                    result = np.full(
                        (n_sessions, len(labels), n_steps, n_draws, n_chains), np.nan
                    )
                for position, (name, element) in enumerate(labels):
                    values = np.array(
                        [
                            value if element is None else np.ravel(value)[element]
                            for value in trajectories[name]
                        ],
                        dtype=float,
                    )
                    result[index, position, : len(values), draw, chain] = values

    assert labels is not None and result is not None
    state_coords = [name if i is None else f"{name}[{i}]" for name, i in labels]
    return xr.DataArray(
        result,
        dims=("session", "state", "timestep", "draw", "chain"),
        coords={
            "session": sessions.session_ids,
            "state": state_coords,
            "timestep": np.arange(n_steps),
            "draw": data.coords["draw"].values,
            "chain": data.coords["chain"].values,
        },
        attrs=_group_attrs(sessions),
    )


def summarize(
    quantity: xr.DataArray, statistic: Callable = np.median
) -> pd.DataFrame:
    """Collapse draws and chains into a table keyed by the grouping columns.

    Parameters
    ----------
    quantity
        The output of `get_session_parameters` or `get_state_trajectories`.
    statistic : optional
        A function reducing an array along an ``axis`` argument. Defaults to
        `np.median`.

    Returns
    -------
    pd.DataFrame
        One row per session, or per session and timestep for trajectories, with one
        column per grouping column and one per parameter or state.

    Raises
    ------
    ValueError
        If the draws contain non-finite values, as from a failed run.
    """
    if "session_cols" not in quantity.attrs:
        raise ValueError(
            "Cannot summarize an array without session information. Use "
            "`get_session_parameters` or `get_state_trajectories`."
        )
    session_cols = list(quantity.attrs["session_cols"])
    group_values = quantity.attrs["group_values"]
    n_timesteps = quantity.attrs["n_timesteps"]
    values = quantity.transpose(..., "draw", "chain").values
    has_timesteps = "timestep" in quantity.dims

    if has_timesteps:
        # Padding after the end of shorter sessions is expected to be NaN
        valid = np.arange(values.shape[2])[None, :] <= np.asarray(n_timesteps)[:, None]
        # States that were never set are NaN in every draw
        unset = np.all(np.isnan(values), axis=(-2, -1))
        checked = values[valid[:, None, :] & ~unset]
    else:
        checked = values
    if not np.all(np.isfinite(checked)):
        raise ValueError(
            "The draws contain non-finite values. They may come from a failed or "
            "rejected run."
        )

    flat = values.reshape(*values.shape[:-2], -1)
    reduced = statistic(flat, axis=-1)
    columns = [str(name) for name in quantity.coords[quantity.dims[1]].values]

    rows = []
    for index, group in enumerate(group_values):
        keys = dict(zip(session_cols, group))
        if has_timesteps:
            for t in range(n_timesteps[index] + 1):
                row = keys | {"timestep": t}
                row |= dict(zip(columns, reduced[index, :, t].tolist()))
                rows.append(row)
        else:
            rows.append(keys | dict(zip(columns, reduced[index].tolist())))

    return pd.DataFrame(rows)
