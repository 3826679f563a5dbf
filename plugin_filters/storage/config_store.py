"""Holder for the process-wide AlgorithmConfig.

Every write builds and validates a complete new config, then swaps a single
reference under a lock. Readers call snapshot() once per computation and keep
the frozen object they got back.
"""

import logging
import threading
from pathlib import Path
from typing import Any

import pydantic

from plugin_filters.consts import DEFAULT_DATA_DIR
from plugin_filters.errors import ValidationError
from plugin_filters.models.model_eval import (
    AlgorithmConfig,
    CacheTTLs,
    HealthWeights,
    UsabilityWeights,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config" / "algorithm.json"

WeightsInput = dict[str, int] | pydantic.BaseModel


def _errors_to_details(error: pydantic.ValidationError) -> dict[str, Any]:
    return {
        ".".join(str(p) for p in err["loc"]) or "config": err["msg"] for err in error.errors()
    }


def _complete_weights(weights: WeightsInput, model: type[pydantic.BaseModel]) -> dict[str, int]:
    """Dump a weights model, or check a plain map names every component."""
    if isinstance(weights, pydantic.BaseModel):
        return weights.model_dump()
    missing = sorted(set(model.model_fields) - set(weights))
    if missing:
        msg = f"Missing {model.__name__} components: {', '.join(missing)}"
        logger.warning(msg)
        raise ValidationError(msg, details={"missing": missing})
    return dict(weights)


class ConfigStore:
    """Validated, atomically replaced algorithm configuration.

    Attributes:
        path: JSON file the config is persisted to, or None for in-memory only.
    """

    def __init__(self, path: Path | str | None = None, initial: AlgorithmConfig | None = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._config = initial or AlgorithmConfig()

    def load(self) -> AlgorithmConfig:
        """Load the persisted config, falling back to defaults.

        A missing file yields defaults silently. An unreadable or invalid file
        yields defaults with a warning.
        """
        config = AlgorithmConfig()
        if self.path is not None and self.path.exists():
            try:
                config = AlgorithmConfig.model_validate_json(self.path.read_text(encoding="utf-8"))
                logger.info(f"Loaded algorithm config from {self.path}")
            except (OSError, pydantic.ValidationError) as e:
                logger.warning(f"Ignoring invalid config at {self.path}, using defaults: {e}")
                config = AlgorithmConfig()

        with self._lock:
            self._config = config
        return config

    def snapshot(self) -> AlgorithmConfig:
        """Current config. The returned object never changes."""
        with self._lock:
            return self._config

    def replace(self, config: AlgorithmConfig) -> AlgorithmConfig:
        """Swap in a complete config and persist it."""
        with self._lock:
            self._config = config
            self._persist(config)
        logger.info(f"Algorithm config replaced (fingerprint={config.fingerprint()})")
        return config

    def update(
        self,
        usability: WeightsInput | None = None,
        health: WeightsInput | None = None,
        cache_ttls: dict[str, int] | CacheTTLs | None = None,
        platform_version: str | None = None,
    ) -> AlgorithmConfig:
        """Validate and apply any combination of changes as one replacement.

        Weight maps must name every component of their score type; a partial
        map is rejected rather than merged. TTL maps may name a subset of
        kinds; unnamed kinds keep their current TTL.

        Args:
            usability: New usability weights.
            health: New health weights.
            cache_ttls: New TTLs per cache kind, in seconds.
            platform_version: Platform release the compatibility component
                compares against.

        Returns:
            The new config.

        Raises:
            ValidationError: If any part is incomplete, out of range, or a
                weight map does not sum to 100 within tolerance. The prior
                config is kept.
        """
        with self._lock:
            data = self._config.model_dump()
            if usability is not None:
                data["usability_weights"] = _complete_weights(usability, UsabilityWeights)
            if health is not None:
                data["health_weights"] = _complete_weights(health, HealthWeights)
            if cache_ttls is not None:
                if isinstance(cache_ttls, CacheTTLs):
                    data["cache_ttls"] = cache_ttls.model_dump()
                else:
                    data["cache_ttls"].update(cache_ttls)
            if platform_version is not None:
                data["platform_version"] = platform_version.strip()

            try:
                config = AlgorithmConfig.model_validate(data)
            except pydantic.ValidationError as e:
                details = _errors_to_details(e)
                logger.warning(f"Rejected algorithm config update: {details}")
                raise ValidationError("Invalid algorithm configuration", details=details) from e

            return self.replace(config)

    def update_weights(
        self,
        usability: WeightsInput | None = None,
        health: WeightsInput | None = None,
    ) -> AlgorithmConfig:
        """Replace one or both weight maps."""
        return self.update(usability=usability, health=health)

    def update_cache_ttls(self, ttls: dict[str, int] | CacheTTLs) -> AlgorithmConfig:
        """Replace cache TTLs. Each must lie within 60..604800 seconds."""
        return self.update(cache_ttls=ttls)

    def set_platform_version(self, version: str) -> AlgorithmConfig:
        return self.update(platform_version=version)

    def reset_to_defaults(self) -> AlgorithmConfig:
        return self.replace(AlgorithmConfig())

    def _persist(self, config: AlgorithmConfig) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to persist algorithm config to {self.path}: {e}")
