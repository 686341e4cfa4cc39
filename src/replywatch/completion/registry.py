"""Name-to-factory registry for completion strategies."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from replywatch.errors import ConfigurationError

if TYPE_CHECKING:
    from replywatch.completion.base import CompletionStrategy
    from replywatch.config.settings import Settings

logger = logging.getLogger(__name__)

StrategyFactory = Callable[["Settings"], "CompletionStrategy"]

_FACTORIES: dict[str, StrategyFactory] = {}


def register_strategy(name: str) -> Callable[[StrategyFactory], StrategyFactory]:
    """Register a factory that builds a strategy from Settings."""

    def decorator(factory: StrategyFactory) -> StrategyFactory:
        if name in _FACTORIES:
            raise ValueError(f"Strategy {name!r} is already registered")
        _FACTORIES[name] = factory
        return factory

    return decorator


def _load_builtin() -> None:
    import replywatch.completion.strategies  # noqa: F401


def available_strategies() -> list[str]:
    _load_builtin()
    return sorted(_FACTORIES)


def create_strategy(name: str, settings: Settings) -> CompletionStrategy:
    """Build the strategy registered under ``name``.

    Raises:
        ConfigurationError: If no strategy has that name.
    """
    _load_builtin()
    factory = _FACTORIES.get(name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown completion strategy {name!r}; choose from {', '.join(sorted(_FACTORIES))}"
        )
    logger.debug("Creating completion strategy %s", name)
    return factory(settings)
