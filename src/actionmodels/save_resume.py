"""Saving posterior draws in segments, and resuming interrupted runs.

Each chain is written as a series of netCDF files, one per segment of
``samples_per_segment`` draws, named ``{prefix}_c{chain}_s{segment}.nc``. Chains and
segments are numbered from 1. A run can be resumed as long as the segments of every
chain are contiguous. It continues from the last draw and step size of the last
complete segment.
"""

import logging
import math
import re
from pathlib import Path
from typing import Any, Callable

import arviz as az
import numpy as np
import xarray as xr

from .config import SaveResumeConfig

_logger = logging.getLogger("actionmodels")

Initvals = list[dict[str, Any]]
SampleSegment = Callable[[int, int, int, Initvals | None, float | None], Any]


def find_segments(config: SaveResumeConfig, chains: int) -> dict[int, list[int]]:
    """Find the segment numbers already on disk, per chain."""
    pattern = re.compile(rf"^{re.escape(config.prefix)}_c(\d+)_s(\d+)\.nc$")
    found: dict[int, list[int]] = {chain: [] for chain in range(1, chains + 1)}
    save_dir = Path(config.save_dir)
    if not save_dir.exists():
        return found

    for path in save_dir.iterdir():
        match = pattern.match(path.name)
        if match is None:
            continue
        chain, segment = int(match.group(1)), int(match.group(2))
        if chain in found:
            found[chain].append(segment)
    return {chain: sorted(segments) for chain, segments in found.items()}


def completed_segments(config: SaveResumeConfig, chains: int) -> int:
    """Return the number of segments that every chain has completed.

    Raises
    ------
    ValueError
        If a chain has a gap in its segments.
    """
    counts = []
    for chain, segments in find_segments(config, chains).items():
        expected = list(range(1, len(segments) + 1))
        if segments != expected:
            missing = sorted(set(range(1, max(segments) + 1)) - set(segments))
            raise ValueError(
                f"Chain {chain} has segment(s) {segments} in {config.save_dir}, but "
                f"segment(s) {missing} are missing. Cannot resume."
            )
        counts.append(len(segments))
    return min(counts) if counts else 0


def segment_sizes(draws: int, samples_per_segment: int) -> list[int]:
    """Split a number of draws into segments."""
    n_segments = math.ceil(draws / samples_per_segment)
    sizes = [samples_per_segment] * n_segments
    sizes[-1] = draws - samples_per_segment * (n_segments - 1)
    return sizes


def save_segment(idata: az.InferenceData, config: SaveResumeConfig, segment: int):
    """Write one segment of every chain in ``idata`` to disk."""
    save_dir = Path(config.save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)
    for position, chain in enumerate(idata.posterior.chain.values):
        chain_idata = idata.isel(chain=[position])
        path = config.segment_path(position + 1, segment)
        az.to_netcdf(chain_idata, path)
        _logger.debug("Saved chain %s segment %d to %s.", chain, segment, path)


def load_chain(config: SaveResumeConfig, chain: int, n_segments: int) -> dict:
    """Load the segments of one chain and join them along the draws."""
    segments = [
        az.from_netcdf(config.segment_path(chain, segment))
        for segment in range(1, n_segments + 1)
    ]
    groups = {}
    for group in ("posterior", "sample_stats"):
        if not all(group in segment.groups() for segment in segments):
            continue
        data = xr.concat([segment[group] for segment in segments], dim="draw")
        data = data.assign_coords(
            draw=np.arange(data.sizes["draw"]), chain=[chain - 1]
        )
        groups[group] = data
    return groups


def concatenate_segments(
    config: SaveResumeConfig, chains: int, n_segments: int
) -> az.InferenceData:
    """Join the saved segments of all chains, renumbering draws from 0."""
    per_chain = [
        load_chain(config, chain, n_segments) for chain in range(1, chains + 1)
    ]
    groups = {
        group: xr.concat([chain[group] for chain in per_chain], dim="chain")
        for group in per_chain[0]
    }
    return az.InferenceData(**groups)


def last_state(
    idata: az.InferenceData, var_names: list[str]
) -> tuple[list[dict[str, np.ndarray]], float | None]:
    """Return the last draw of every chain and the mean final step size."""
    posterior = idata.posterior
    initvals = [
        {
            name: posterior[name].isel(chain=position, draw=-1).values
            for name in var_names
        }
        for position in range(posterior.sizes["chain"])
    ]
    step_size = None
    if "sample_stats" in idata.groups() and "step_size" in idata.sample_stats:
        step_size = float(idata.sample_stats["step_size"].isel(draw=-1).mean())
    return initvals, step_size


def sample_in_segments(
    sample_segment: SampleSegment,
    config: SaveResumeConfig,
    draws: int,
    tune: int,
    chains: int,
    var_names: list[str],
) -> az.InferenceData:
    """Sample segment by segment, saving each one and resuming from disk.

    Parameters
    ----------
    sample_segment
        Called as ``sample_segment(segment, draws, tune, initvals, step_size)`` and
        returns the `InferenceData` of one segment of all chains. ``initvals`` and
        ``step_size`` are None for the first segment.
    config
        Where and how segments are saved.
    draws
        The total number of draws per chain.
    tune
        The number of tuning steps before the first segment.
    chains
        The number of chains.
    var_names
        The free variables used to warm-start later segments.

    Returns
    -------
    az.InferenceData
        All draws of all chains.
    """
    config.validate()
    sizes = segment_sizes(draws, config.samples_per_segment)
    done = min(completed_segments(config, chains), len(sizes))

    initvals, step_size = None, None
    if done:
        _logger.info(
            "Resuming from %d of %d segment(s) found in %s.",
            done,
            len(sizes),
            config.save_dir,
        )
        previous = concatenate_segments(config, chains, done)
        initvals, step_size = last_state(previous, var_names)

    for segment in range(done + 1, len(sizes) + 1):
        _logger.info("Sampling segment %d of %d.", segment, len(sizes))
        first = initvals is None
        idata = sample_segment(
            segment, sizes[segment - 1], tune if first else 0, initvals, step_size
        )
        save_segment(idata, config, segment)
        initvals, step_size = last_state(idata, var_names)

    return concatenate_segments(config, chains, len(sizes))
