"""An explicit registry of premade action models."""

from dataclasses import dataclass
from typing import Any, Callable

from ..action_model import ActionModel


@dataclass(frozen=True)
class PremadeModel:
    """A registered premade model.

    Parameters
    ----------
    name
        The name the model is registered under.
    factory
        Creates the action model from keyword arguments.
    description : optional
        A short description of the model.
    """

    name: str
    factory: Callable[..., ActionModel]
    description: str = ""


class ModelRegistry:
    """Maps names to premade action model factories.

    Registries are plain objects. Create one with `build_default_registry` and pass it
    to whatever needs to look up models by name.
    """

    def __init__(self) -> None:
        self._models: dict[str, PremadeModel] = {}

    def register(
        self, name: str, factory: Callable[..., ActionModel], description: str = ""
    ) -> None:
        """Register a premade model factory.

        Raises
        ------
        ValueError
            If a different factory is already registered under the same name.
        """
        model = PremadeModel(name, factory, description)
        existing = self._models.get(name)
        if existing is not None and existing != model:
            raise ValueError(f"A premade model named '{name}' is already registered.")
        self._models[name] = model

    def get(self, name: str) -> PremadeModel:
        """Return a registered model.

        Raises
        ------
        KeyError
            If no model is registered under the name.
        """
        if name not in self._models:
            raise KeyError(
                f"No premade model named '{name}'. Available models: "
                f"{', '.join(self.list()) or 'none'}."
            )
        return self._models[name]

    def list(self) -> list[str]:
        """Return the names of the registered models, sorted."""
        return sorted(self._models)

    def create(self, name: str, **kwargs: Any) -> ActionModel:
        """Create the action model registered under ``name``."""
        return self.get(name).factory(**kwargs)

    def __contains__(self, name: object) -> bool:
        """Check whether a model is registered under ``name``."""
        return name in self._models

    def __len__(self) -> int:
        """Return the number of registered models."""
        return len(self._models)


def build_default_registry() -> ModelRegistry:
    """Create a registry with the premade models of this package."""
    from .pvl_delta import pvl_delta_model
    from .rescorla_wagner import rescorla_wagner

    registry = ModelRegistry()
    registry.register(
        "rescorla_wagner",
        rescorla_wagner,
        "Rescorla-Wagner learning with continuous, binary or categorical outcomes.",
    )
    registry.register(
        "pvl_delta",
        pvl_delta_model,
        "Prospect Valence Learning with a delta rule, for multi-option tasks.",
    )
    return registry
