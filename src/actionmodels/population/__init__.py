"""Population models over per-session parameters."""

from .base import PopulationModel
from .independent import IndependentPopulationModel, SingleSessionPopulationModel
from .regression import (
    DesignMatrices,
    Regression,
    RegressionPopulationModel,
    build_design_matrices,
)

__all__ = [
    "DesignMatrices",
    "IndependentPopulationModel",
    "PopulationModel",
    "Regression",
    "RegressionPopulationModel",
    "SingleSessionPopulationModel",
    "build_design_matrices",
]
