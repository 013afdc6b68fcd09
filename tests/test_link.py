import pytest

import numpy as np
import pytensor.tensor as pt

from actionmodels import Link, bounded_exp


def test_named_links():
    x = np.array([-2.0, 0.0, 2.0])

    identity = Link("identity")
    np.testing.assert_allclose(identity.linkinv(x), x)

    logit = Link("logit")
    np.testing.assert_allclose(logit.linkinv(x), 1 / (1 + np.exp(-x)))
    np.testing.assert_allclose(logit.link(logit.linkinv(x)), x)
    np.testing.assert_allclose(
        logit.linkinv_backend(pt.as_tensor_variable(x)).eval(), logit.linkinv(x)
    )

    assert Link("logistic").name == "logit"
    assert Link("exp").name == "log"
    np.testing.assert_allclose(Link("exp").linkinv(x), np.exp(x))


def test_gen_logit():
    link = Link("gen_logit", bounds=(1.0, 3.0))
    x = np.array([-10.0, 0.0, 10.0])
    values = link.linkinv(x)

    assert values[1] == pytest.approx(2.0)
    assert np.all((values > 1.0) & (values < 3.0))
    np.testing.assert_allclose(link.link(values), x, rtol=1e-6)
    np.testing.assert_allclose(
        link.linkinv_backend(pt.as_tensor_variable(x)).eval(), values
    )
    assert str(link) == "Generalized logit link function with bounds (1.0, 3.0)"

    with pytest.raises(ValueError, match="Bounds must be specified"):
        Link("gen_logit")


def test_custom_links():
    with pytest.raises(ValueError, match="is not known"):
        Link("softplus")

    link = Link.from_spec(bounded_exp(upper=10.0))
    assert link.name == "_bounded_exp"
    np.testing.assert_allclose(
        link.linkinv_backend(pt.as_tensor_variable(np.array([0.0, 5.0]))).eval(),
        [1.0, 10.0],
    )

    assert Link.from_spec(None).name == "identity"
    assert Link.from_spec("log").name == "log"
    existing = Link("logit")
    assert Link.from_spec(existing) is existing
    assert repr(existing) == "Link(name: logit)"

    with pytest.raises(ValueError, match="Cannot make an inverse link"):
        Link.from_spec(1.0)
