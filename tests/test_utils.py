import pytest

import jax.numpy as jnp
import numpy as np
import pytensor
import pytensor.tensor as pt

import actionmodels
from actionmodels.utils import make_session_id, split_session_id


@pytest.mark.parametrize(
    "values, expected",
    [
        ([1, 2, 3], [1, 2, 3]),
        ([(1, "a"), (2, "b")], ([1, 2], ["a", "b"])),
        ([(1, 2, 3), (4, 5, 6)], ([1, 4], [2, 5], [3, 6])),
    ],
)
def test_evert_and_revert(values, expected):
    everted = actionmodels.evert(values)
    assert everted == expected
    assert actionmodels.revert(everted) == values


def test_evert_errors():
    assert actionmodels.evert([]) == []
    with pytest.raises(ValueError, match="same length"):
        actionmodels.evert([(1, 2), (3,)])
    with pytest.raises(ValueError, match="same length"):
        actionmodels.revert(([1, 2], [3]))


def test_session_ids():
    session_id = make_session_id(["id", "treatment"], [1, "A"])
    assert session_id == "id:1.treatment:A"
    assert split_session_id(session_id) == {"id": "1", "treatment": "A"}


def test_bounded_exp():
    link = actionmodels.bounded_exp()
    values = np.asarray(link(jnp.array([-1000.0, 0.0, 1000.0])))
    assert values[0] == np.finfo(np.float64).eps
    assert values[1] == 1.0
    assert values[2] == 1e200

    tensor = link(pt.as_tensor_variable(np.array([-1000.0, 0.0])))
    np.testing.assert_allclose(tensor.eval(), [np.finfo(np.float64).eps, 1.0])

    capped = actionmodels.bounded_exp(lower=0.5, upper=2.0)
    np.testing.assert_allclose(capped(jnp.array([-5.0, 5.0])), [0.5, 2.0])


def test_bounded_logistic():
    link = actionmodels.bounded_logistic()
    values = np.asarray(link(jnp.array([-1000.0, 0.0, 1000.0])))
    assert 0.0 < values[0] < 1e-10
    assert values[1] == 0.5
    assert 1.0 - 1e-10 < values[2] < 1.0

    tensor = link(pt.as_tensor_variable(np.array([0.0])))
    np.testing.assert_allclose(tensor.eval(), [0.5])


def test_set_floatX():
    actionmodels.set_floatX("float32", update_jax=False)
    assert pytensor.config.floatX == "float32"
    actionmodels.set_floatX("float64", update_jax=False)
    assert pytensor.config.floatX == "float64"

    with pytest.raises(ValueError, match="must be either"):
        actionmodels.set_floatX("float16")
