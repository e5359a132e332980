"""
Load Test — Configuration.

Defines environment-specific configuration classes for the ID generator
load test.  Each class captures where the generator lives, how long a
single request may take, how the run ramps, and what the run is judged
against.  The ``get_config`` factory selects the right class based on
the ``IDGEN_ENV`` environment variable (or an explicit key).

Stages and thresholds can also come from a YAML run profile pointed to
by ``IDGEN_PROFILE``::

    stages:
      - {duration: 15s, target: 100}
      - {duration: 300s, target: 500}
      - {duration: 15s, target: 0}
    thresholds:
      http_req_duration: ["p(99)<20"]
      http_req_failed: ["rate<0.001"]
      checks: ["rate>0.999"]

Key Concepts Demonstrated:
- Class-based configuration with inheritance for DRY defaults
- Environment-variable overrides for CI and container runs
- Separate testing configuration with a tiny ramp and fake host
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from idgen_load.profile import Stage, parse_stages
from idgen_load.thresholds import DEFAULT_THRESHOLDS, Threshold, load_thresholds


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Base (shared) configuration for the load test.

    All environment-specific classes inherit from ``Config`` so that
    common defaults only need to be stated once.
    """

    # Base URL of the ID generator.  Locust's ``--host`` wins over this.
    TARGET_HOST: str = os.environ.get("IDGEN_TARGET_HOST", "http://localhost")
    ENDPOINT_PATH: str = os.environ.get("IDGEN_ENDPOINT_PATH", "/api/generator/ids")

    # Seconds to wait for a single response before counting a transport failure.
    REQUEST_TIMEOUT: float = float(os.environ.get("IDGEN_REQUEST_TIMEOUT", "10"))

    # Seconds in-flight iterations get to finish once the ramp ends.
    # 0 turns the graceful drain into a hard cutoff.
    STOP_TIMEOUT: float = float(os.environ.get("IDGEN_STOP_TIMEOUT", "10"))

    STAGES: str = os.environ.get("IDGEN_STAGES", "15s:100,300s:500,15s:0")
    START_USERS: int = int(os.environ.get("IDGEN_START_USERS", "0"))

    PROFILE_FILE: str | None = os.environ.get("IDGEN_PROFILE") or None
    SUMMARY_EXPORT: str | None = os.environ.get("IDGEN_SUMMARY_EXPORT") or None

    # Per-iteration "[VU: n, Iter: n] ID: x" lines feed the offline ID audit.
    LOG_IDS: bool = _env_bool("IDGEN_LOG_IDS", "true")
    LOG_LEVEL: str = os.environ.get("IDGEN_LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Local runs against a generator on ``localhost``."""


class TestingConfig(Config):
    """
    Test-suite overrides.

    A non-routable host keeps tests from reaching a real service, and a
    two-second ramp keeps anything that does run short.
    """

    TARGET_HOST: str = os.environ.get("TEST_IDGEN_TARGET_HOST", "http://idgen.test")
    REQUEST_TIMEOUT: float = float(os.environ.get("TEST_IDGEN_REQUEST_TIMEOUT", "1"))
    STOP_TIMEOUT: float = 0.0
    STAGES: str = "1s:2,1s:0"
    PROFILE_FILE: str | None = None
    SUMMARY_EXPORT: str | None = None
    LOG_IDS: bool = False


class ProductionConfig(Config):
    """
    Runs against a deployed generator.

    All values are expected to come from environment variables set by
    the CI job or container.
    """

    LOG_IDS: bool = _env_bool("IDGEN_LOG_IDS", "true")


# Lookup table mapping environment name strings to their config classes.
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Return the configuration class for the given environment.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When *None*, the ``IDGEN_ENV``
            environment variable is consulted, falling back to
            ``"development"`` if unset.

    Returns:
        The ``Config`` subclass matching the requested environment,
        or ``DevelopmentConfig`` if the key is unrecognised.
    """
    if env is None:
        env = os.environ.get("IDGEN_ENV", "development")
    return config.get(env, config["default"])


@dataclass(frozen=True)
class RunProfile:
    """Everything that shapes and judges one run."""

    stages: tuple[Stage, ...]
    thresholds: tuple[Threshold, ...]
    start_users: int = 0


def _read_profile_file(path: Path) -> dict[str, Any]:
    """
    Read a YAML run profile.

    Raises:
        ValueError: If the file does not hold a mapping.
    """
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Run profile {path} must be a YAML mapping")
    return data


def load_run_profile(config_class: type[Config], profile_path: Path | None = None) -> RunProfile:
    """
    Resolve stages and thresholds for a run.

    Values in the YAML profile (``profile_path`` or
    ``config_class.PROFILE_FILE``) win; anything the profile leaves out
    falls back to ``config_class.STAGES`` and the default thresholds.

    Raises:
        ValueError: For unreadable stages or a profile without any
            stages.
        ThresholdError: For malformed thresholds.
    """
    if profile_path is None and config_class.PROFILE_FILE:
        profile_path = Path(config_class.PROFILE_FILE)

    data = _read_profile_file(profile_path) if profile_path is not None else {}

    stages = parse_stages(data.get("stages", config_class.STAGES))
    if not stages:
        raise ValueError("A run needs at least one stage")

    thresholds = load_thresholds(data.get("thresholds", DEFAULT_THRESHOLDS))
    start_users = int(data.get("start_users", config_class.START_USERS))
    return RunProfile(stages=stages, thresholds=thresholds, start_users=start_users)
