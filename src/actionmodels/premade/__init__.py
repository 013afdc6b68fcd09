"""Premade action models."""

from .pvl_delta import PVLDeltaConfig, pvl_delta_model
from .registry import ModelRegistry, PremadeModel, build_default_registry
from .rescorla_wagner import (
    RescorlaWagner,
    RescorlaWagnerAttributes,
    RescorlaWagnerConfig,
    rescorla_wagner,
)

__all__ = [
    "ModelRegistry",
    "PVLDeltaConfig",
    "PremadeModel",
    "RescorlaWagner",
    "RescorlaWagnerAttributes",
    "RescorlaWagnerConfig",
    "build_default_registry",
    "pvl_delta_model",
    "rescorla_wagner",
]
