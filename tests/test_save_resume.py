import pytest

import arviz as az
import numpy as np

from actionmodels import SamplerConfig, SaveResumeConfig
from actionmodels.save_resume import (
    completed_segments,
    concatenate_segments,
    find_segments,
    last_state,
    sample_in_segments,
    save_segment,
    segment_sizes,
)


def _touch(config, chain, segment):
    config.segment_path(chain, segment).touch()


def _segment_idata(chains, draws, start=0.0):
    values = start + np.arange(chains * draws, dtype=float).reshape(chains, draws)
    return az.from_dict(
        posterior={"rate": values},
        sample_stats={"step_size": np.full((chains, draws), 0.5)},
    )


def test_sampler_config():
    SamplerConfig().validate()
    with pytest.raises(ValueError, match="`draws` must be a positive"):
        SamplerConfig(draws=0).validate()
    with pytest.raises(ValueError, match="`tune` must not be negative"):
        SamplerConfig(tune=-1).validate()
    with pytest.raises(ValueError, match="Unknown init strategy"):
        SamplerConfig(init="advi").validate()
    with pytest.raises(ValueError, match="Set chains on the config"):
        SamplerConfig(kwargs={"chains": 2}).validate()


def test_save_resume_config(tmp_path):
    config = SaveResumeConfig(tmp_path, prefix="run")
    config.validate()
    assert config.segment_path(2, 3) == tmp_path / "run_c2_s3.nc"

    with pytest.raises(ValueError, match="positive integer"):
        SaveResumeConfig(tmp_path, samples_per_segment=0).validate()
    with pytest.raises(ValueError, match="non-empty file name prefix"):
        SaveResumeConfig(tmp_path, prefix="a/b").validate()


def test_segment_sizes():
    assert segment_sizes(250, 100) == [100, 100, 50]
    assert segment_sizes(200, 100) == [100, 100]
    assert segment_sizes(5, 100) == [5]


def test_find_segments(tmp_path):
    config = SaveResumeConfig(tmp_path, prefix="run")
    assert find_segments(config, chains=2) == {1: [], 2: []}
    assert completed_segments(config, chains=2) == 0

    for segment in (2, 1):
        _touch(config, 1, segment)
        _touch(config, 2, segment)
    _touch(config, 2, 3)
    _touch(config, 3, 1)
    (tmp_path / "other_c1_s4.nc").touch()

    assert find_segments(config, chains=2) == {1: [1, 2], 2: [1, 2, 3]}
    # Every chain must have finished a segment for it to count
    assert completed_segments(config, chains=2) == 2


def test_gaps_cannot_be_resumed(tmp_path):
    config = SaveResumeConfig(tmp_path)
    _touch(config, 1, 1)
    _touch(config, 1, 3)
    with pytest.raises(ValueError, match="segment\\(s\\) \\[2\\] are missing"):
        completed_segments(config, chains=1)


def test_missing_directory(tmp_path):
    config = SaveResumeConfig(tmp_path / "not_yet_created")
    assert completed_segments(config, chains=1) == 0


def test_save_and_concatenate(tmp_path):
    config = SaveResumeConfig(tmp_path, samples_per_segment=3)
    save_segment(_segment_idata(2, 3), config, 1)
    save_segment(_segment_idata(2, 2, start=100.0), config, 2)

    assert find_segments(config, chains=2) == {1: [1, 2], 2: [1, 2]}

    idata = concatenate_segments(config, chains=2, n_segments=2)
    rate = idata.posterior["rate"]
    assert rate.sizes == {"chain": 2, "draw": 5}
    np.testing.assert_array_equal(rate["draw"], np.arange(5))
    np.testing.assert_array_equal(rate["chain"], [0, 1])
    np.testing.assert_allclose(rate.sel(chain=1), [3.0, 4.0, 5.0, 102.0, 103.0])

    initvals, step_size = last_state(idata, ["rate"])
    assert [float(values["rate"]) for values in initvals] == [101.0, 103.0]
    assert step_size == 0.5


def test_sample_in_segments_resumes(tmp_path):
    config = SaveResumeConfig(tmp_path, samples_per_segment=2)
    calls = []

    def sample_segment(segment, draws, tune, initvals, step_size):
        calls.append((segment, draws, tune, initvals is None, step_size))
        return _segment_idata(2, draws, start=10.0 * segment)

    idata = sample_in_segments(
        sample_segment, config, draws=5, tune=10, chains=2, var_names=["rate"]
    )
    assert idata.posterior.sizes["draw"] == 5
    assert calls == [
        (1, 2, 10, True, None),
        (2, 2, 0, False, 0.5),
        (3, 1, 0, False, 0.5),
    ]

    # Simulate an interruption after the second segment
    for chain in (1, 2):
        config.segment_path(chain, 3).unlink()
    calls.clear()

    resumed = sample_in_segments(
        sample_segment, config, draws=5, tune=10, chains=2, var_names=["rate"]
    )
    assert calls == [(3, 1, 0, False, 0.5)]
    np.testing.assert_allclose(
        resumed.posterior["rate"].values, idata.posterior["rate"].values
    )

    # A finished run is loaded without sampling
    calls.clear()
    sample_in_segments(
        sample_segment, config, draws=5, tune=10, chains=2, var_names=["rate"]
    )
    assert calls == []
