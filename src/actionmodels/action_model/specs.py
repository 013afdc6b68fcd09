"""Specifications of the attributes of an action model.

An action model declares its parameters, states, observations and actions with the
classes in this module. The specifications are immutable. Each one carries a semantic
type that is resolved to a concrete constructor only when attributes are initialized
for a `NumericContext`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import numpy as np
import numpyro.distributions as dist

from .numeric import NumericContext


class AttributeType(Enum):
    """Semantic types of attribute values."""

    REAL = "real"
    INTEGER = "integer"
    REAL_ARRAY = "real_array"
    INTEGER_ARRAY = "integer_array"

    @property
    def is_array(self) -> bool:
        """Whether the type is an array type."""
        return self in (AttributeType.REAL_ARRAY, AttributeType.INTEGER_ARRAY)

    @property
    def is_discrete(self) -> bool:
        """Whether the type holds integers."""
        return self in (AttributeType.INTEGER, AttributeType.INTEGER_ARRAY)


_TYPE_ALIASES: dict[Any, AttributeType] = {
    float: AttributeType.REAL,
    int: AttributeType.INTEGER,
    bool: AttributeType.INTEGER,
    np.ndarray: AttributeType.REAL_ARRAY,
    "float": AttributeType.REAL,
    "real": AttributeType.REAL,
    "int": AttributeType.INTEGER,
    "integer": AttributeType.INTEGER,
    "float_array": AttributeType.REAL_ARRAY,
    "real_array": AttributeType.REAL_ARRAY,
    "int_array": AttributeType.INTEGER_ARRAY,
    "integer_array": AttributeType.INTEGER_ARRAY,
}


def resolve_type(type_: Any) -> Any:
    """Map a user-supplied type to an `AttributeType`.

    Types that are not recognized are returned unchanged and treated as custom types.
    """
    if isinstance(type_, AttributeType):
        return type_
    try:
        return _TYPE_ALIASES.get(type_, type_)
    except TypeError:
        # Unhashable custom type descriptions
        return type_


def infer_type(value: Any, discrete: bool = False) -> Any:
    """Infer the semantic type of a value."""
    if isinstance(value, (bool, int, np.integer)):
        return AttributeType.INTEGER
    if isinstance(value, (float, np.floating)):
        return AttributeType.INTEGER if discrete else AttributeType.REAL
    if isinstance(value, (list, tuple, np.ndarray)) or hasattr(value, "dtype"):
        array = np.asarray(value)
        if array.ndim == 0:
            return infer_type(array.item(), discrete)
        if array.dtype.kind in "biu":
            return AttributeType.INTEGER_ARRAY
        if array.dtype.kind == "f":
            return AttributeType.INTEGER_ARRAY if discrete else AttributeType.REAL_ARRAY
    return type(value)


def load_type(attribute_type: Any, context: NumericContext) -> Callable[[Any], Any]:
    """Return the constructor for values of a semantic type in a numeric context.

    Real types resolve to the context's float type and integer types to its integer
    type, element-wise for arrays. Custom types pass through unchanged.
    """
    if attribute_type is AttributeType.REAL:
        return context.float_type
    if attribute_type is AttributeType.INTEGER:
        return context.int_type
    if attribute_type is AttributeType.REAL_ARRAY:
        return context.float_array_type
    if attribute_type is AttributeType.INTEGER_ARRAY:
        return context.int_array_type
    return _identity


def _identity(value: Any) -> Any:
    return value


def is_compatible(value_type: Any, target_type: Any) -> bool:
    """Check whether values of `value_type` can be stored as `target_type`."""
    if value_type == target_type:
        return True
    if value_type is AttributeType.INTEGER and target_type is AttributeType.REAL:
        return True
    if (
        value_type is AttributeType.INTEGER_ARRAY
        and target_type is AttributeType.REAL_ARRAY
    ):
        return True
    if isinstance(value_type, type) and isinstance(target_type, type):
        return issubclass(value_type, target_type)
    return False


@dataclass(frozen=True)
class Parameter:
    """A parameter of an action model.

    Parameters
    ----------
    value
        The default value of the parameter.
    discrete : optional
        Whether the parameter takes integer values. Defaults to False.
    type : optional
        The semantic type of the parameter. Inferred from `value` if not given.
    """

    value: Any
    discrete: bool = False
    type: Any = None

    def __post_init__(self):
        """Infer and check the type."""
        _set_type(self, self.value, self.discrete)


@dataclass(frozen=True)
class InitialStateParameter:
    """A parameter whose value becomes the initial value of a state on reset.

    Parameters
    ----------
    value
        The default value of the parameter.
    state
        The name of the state that this parameter initializes.
    discrete : optional
        Whether the parameter takes integer values. Defaults to False.
    type : optional
        The semantic type of the parameter. Inferred from `value` if not given.
    """

    value: Any
    state: str
    discrete: bool = False
    type: Any = None

    def __post_init__(self):
        """Infer and check the type."""
        if not self.state:
            raise ValueError("An InitialStateParameter must name the state it sets.")
        _set_type(self, self.value, self.discrete)


@dataclass(frozen=True)
class State:
    """A state of an action model.

    Parameters
    ----------
    initial_value : optional
        A fixed initial value. If None, the state starts out empty unless an
        `InitialStateParameter` sets it.
    type : optional
        The semantic type of the state. Inferred from `initial_value` if given,
        otherwise real-valued.
    """

    initial_value: Any = None
    type: Any = None

    def __post_init__(self):
        """Infer and check the type."""
        if self.initial_value is None:
            type_ = AttributeType.REAL if self.type is None else self.type
            object.__setattr__(self, "type", resolve_type(type_))
            return
        _set_type(self, self.initial_value, False)


@dataclass(frozen=True)
class Observation:
    """An observation passed to the step function at every timestep."""

    type: Any = AttributeType.REAL

    def __post_init__(self):
        """Resolve the type."""
        object.__setattr__(self, "type", resolve_type(self.type))


# numpyro exposes some families as factory functions that pick a parametrization
_FACTORY_FAMILIES: dict[Any, type] = {
    dist.Bernoulli: dist.BernoulliProbs,
    dist.Categorical: dist.CategoricalProbs,
    dist.Binomial: dist.BinomialProbs,
    dist.Multinomial: dist.MultinomialProbs,
    dist.Geometric: dist.GeometricProbs,
}


def get_distribution_type(family: Any) -> AttributeType:
    """Infer the action type from the support of a numpyro distribution family.

    Parameters
    ----------
    family
        A numpyro distribution class, or one of numpyro's factory functions such as
        `numpyro.distributions.Categorical`.

    Returns
    -------
    AttributeType
        REAL or INTEGER for univariate families, REAL_ARRAY or INTEGER_ARRAY for
        multivariate families.

    Raises
    ------
    ValueError
        If the support of the family cannot be determined.
    """
    family = _FACTORY_FAMILIES.get(family, family)
    support = getattr(family, "support", None)
    try:
        is_discrete = support.is_discrete  # type: ignore[union-attr]
        event_dim = support.event_dim  # type: ignore[union-attr]
    except (AttributeError, NotImplementedError) as exc:
        raise ValueError(
            f"Cannot determine the support of the distribution family {family}. "
            "Please specify the type of the action explicitly."
        ) from exc

    if event_dim == 0:
        return AttributeType.INTEGER if is_discrete else AttributeType.REAL
    return AttributeType.INTEGER_ARRAY if is_discrete else AttributeType.REAL_ARRAY


@dataclass(frozen=True)
class Action:
    """An action produced by the action model.

    Parameters
    ----------
    distribution
        The numpyro distribution family the action is drawn from, e.g.
        `numpyro.distributions.Normal`.
    type : optional
        The semantic type of the action. Inferred from the support of the
        distribution family if not given.

    Raises
    ------
    ValueError
        If `type` does not agree with the support of the distribution family.
    """

    distribution: Any
    type: Any = None

    def __post_init__(self):
        """Check the type against the distribution family."""
        if self.type is None:
            object.__setattr__(self, "type", get_distribution_type(self.distribution))
            return

        type_ = resolve_type(self.type)
        family_type = get_distribution_type(self.distribution)
        if type_ != family_type:
            raise ValueError(
                f"The action type {type_} does not match the support of the "
                f"distribution family {self.distribution}, which produces "
                f"{family_type} values."
            )
        object.__setattr__(self, "type", type_)


def _set_type(spec: Any, value: Any, discrete: bool) -> None:
    inferred = infer_type(value, discrete)
    if spec.type is None:
        object.__setattr__(spec, "type", inferred)
        return

    declared = resolve_type(spec.type)
    if not is_compatible(inferred, declared):
        raise ValueError(
            f"The value {value!r} is not compatible with the declared type "
            f"{declared}."
        )
    object.__setattr__(spec, "type", declared)


@dataclass(frozen=True)
class ParameterLink:
    """Marks a state whose initial value is copied from a parameter on reset."""

    parameter: str
