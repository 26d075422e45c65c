"""Defaults read from the environment."""

import logging
import os

from typing import Optional

from bagsmith.hashers import DEFAULT_ALGORITHMS

logger = logging.getLogger(__name__)

ENV_PREFIX = "BAGSMITH_"
TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off", ""}


def _from_env(item: str) -> Optional[str]:
    var_name = ENV_PREFIX + item.upper().replace("-", "_")
    value = os.environ.get(var_name)
    if value is None:
        logger.debug("%s not set, using the default", var_name)
    return value


def algorithms_from_env() -> tuple[str, ...]:
    """Checksum algorithms from BAGSMITH_ALGORITHMS, e.g. `sha256,sha512`."""
    value = _from_env("algorithms")
    if value is None:
        return DEFAULT_ALGORITHMS
    algorithms = tuple(a.strip() for a in value.split(",") if a.strip())
    if not algorithms:
        raise ValueError("BAGSMITH_ALGORITHMS is set but lists no algorithms")
    return algorithms


def include_hidden_from_env() -> bool:
    value = _from_env("include-hidden")
    if value is None:
        return False
    value = value.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ValueError(f"BAGSMITH_INCLUDE_HIDDEN must be a boolean, not '{value}'")


def workers_from_env() -> Optional[int]:
    value = _from_env("workers")
    if value is None or not value.strip():
        return None
    try:
        workers = int(value)
    except ValueError:
        raise ValueError(f"BAGSMITH_WORKERS must be an integer, not '{value}'") from None
    if workers < 1:
        raise ValueError(f"BAGSMITH_WORKERS must be at least 1, not {workers}")
    return workers
