"""Configuration of sampling runs."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

InitStrategy = Literal["prior", "map", "mle"]


@dataclass
class SamplerConfig:
    """Settings passed to the posterior sampler.

    Parameters
    ----------
    draws
        Number of posterior draws per chain.
    tune
        Number of tuning steps per chain.
    chains
        Number of chains.
    cores : optional
        Number of chains run in parallel. Defaults to 1, since the log-density is
        evaluated in eager JAX.
    random_seed : optional
        Seed for the sampler and for the initial values.
    init : optional
        Where chains start: ``"prior"`` (a draw from the prior), ``"map"`` (the
        maximum a posteriori estimate) or ``"mle"`` (the maximum likelihood
        estimate). Defaults to ``"prior"``.
    kwargs : optional
        Other keyword arguments for `pm.sample`.
    """

    draws: int = 1000
    tune: int = 1000
    chains: int = 4
    cores: int = 1
    random_seed: int | None = None
    init: InitStrategy = "prior"
    kwargs: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate the settings."""
        for name in ("draws", "chains", "cores"):
            if getattr(self, name) < 1:
                raise ValueError(f"`{name}` must be a positive integer.")
        if self.tune < 0:
            raise ValueError("`tune` must not be negative.")
        if self.init not in ("prior", "map", "mle"):
            raise ValueError(
                f"Unknown init strategy '{self.init}'. Use 'prior', 'map' or 'mle'."
            )
        reserved = {"draws", "tune", "chains", "cores", "random_seed"} & set(
            self.kwargs
        )
        if reserved:
            raise ValueError(
                f"Set {', '.join(sorted(reserved))} on the config, not in `kwargs`."
            )


@dataclass
class SaveResumeConfig:
    """Settings for saving posterior draws in segments.

    Parameters
    ----------
    save_dir
        The directory the segments are written to.
    prefix : optional
        The prefix of the segment file names. Defaults to ``"segment"``.
    samples_per_segment : optional
        The number of draws per segment. Defaults to 100.
    """

    save_dir: str | Path
    prefix: str = "segment"
    samples_per_segment: int = 100

    def validate(self) -> None:
        """Validate the settings."""
        if self.samples_per_segment < 1:
            raise ValueError("`samples_per_segment` must be a positive integer.")
        if not self.prefix or "/" in self.prefix:
            raise ValueError("`prefix` must be a non-empty file name prefix.")
        self.save_dir = Path(self.save_dir)

    def segment_path(self, chain: int, segment: int) -> Path:
        """Return the file of one segment of one chain."""
        return Path(self.save_dir) / f"{self.prefix}_c{chain}_s{segment}.nc"
