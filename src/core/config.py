"""Runtime configuration model for Cast.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
There is no implicit default storage root: a dataset materialized
against a guessed path would not be reproducible elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping

from core.constants import (
    CONFIG_FILE_ENV_VAR,
    DEFAULT_CONFIG_FILE,
    STORE_ENV_VAR,
    WORK_ROOT_ENV_VAR,
)
from core.errors import CastConfigError, CastDependencyError

_REMEDIATION = (
    f"Set {STORE_ENV_VAR}=/absolute/path/to/store, add 'store_root: /absolute/path' "
    f"to {DEFAULT_CONFIG_FILE} (or the file named by {CONFIG_FILE_ENV_VAR}), "
    "or pass an explicit store path to this call."
)


@dataclass(frozen=True)
class CastConfig:
    """Validated runtime configuration.

    Attributes:
        store_root: Absolute storage root holding the ``store/`` tree.
        work_root: Optional scratch directory for builder runs.
        config_file: Config file the values were read from, if any.
    """

    store_root: Path | None = None
    work_root: Path | None = None
    config_file: Path | None = None

    @classmethod
    def from_env(cls) -> "CastConfig":
        """Build config from process environment and the config file.

        Returns:
            A config object; ``store_root`` is None when nothing is set.

        Raises:
            CastConfigError: If configured values are invalid.
        """
        file_values: Mapping[str, object] = {}
        config_file = _config_file_path()
        if config_file.exists():
            file_values = _load_config_file(config_file)
        else:
            config_file = None
        store_value = os.getenv(STORE_ENV_VAR) or file_values.get("store_root")
        work_value = os.getenv(WORK_ROOT_ENV_VAR) or file_values.get("work_root")
        return cls(
            store_root=_parse_root(store_value, "store_root"),
            work_root=_parse_root(work_value, "work_root"),
            config_file=config_file,
        )

    def require_store_root(self) -> Path:
        """Return the configured store root or fail with remediation text."""
        return resolve_store_root(None, self)


def resolve_store_root(
    explicit_path: str | Path | None = None,
    config: CastConfig | None = None,
) -> Path:
    """Resolve the storage root with strict priority.

    Priority is the explicit per-call override, then the configured
    store root. Nothing else is ever substituted.

    Args:
        explicit_path: Optional per-call override.
        config: Optional globally configured values.

    Returns:
        Absolute storage root path.

    Raises:
        CastConfigError: If no root is resolvable or the root is relative.
    """
    if explicit_path is not None and str(explicit_path).strip():
        return _require_absolute(Path(explicit_path).expanduser(), "explicit store path")
    if config is not None and config.store_root is not None:
        return _require_absolute(config.store_root, "configured store_root")
    raise CastConfigError(f"Cast storage root is not configured. {_REMEDIATION}")


def _config_file_path() -> Path:
    """Return the config file location honoring the override env var."""
    raw_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if raw_value:
        return Path(raw_value).expanduser()
    return DEFAULT_CONFIG_FILE.expanduser()


def _load_config_file(config_file: Path) -> Mapping[str, object]:
    """Read the YAML config file.

    Args:
        config_file: Existing config file path.

    Returns:
        Top-level mapping of config values.

    Raises:
        CastConfigError: If the file cannot be read or parsed.
        CastDependencyError: If PyYAML is missing.
    """
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise CastDependencyError(
            "Reading the Cast config file requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    try:
        payload = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except OSError as error:
        raise CastConfigError(
            f"Failed to read config file {config_file}: {error}. Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise CastConfigError(
            f"Failed to parse config file {config_file}: {error}. Fix the YAML syntax."
        ) from error
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise CastConfigError(
            f"Invalid config file {config_file}: expected a mapping at top level. "
            "Write keys such as 'store_root: /data/cast-store'."
        )
    return payload


def _parse_root(raw_value: object, field_name: str) -> Path | None:
    """Parse one configured root directory value."""
    if raw_value is None or raw_value == "":
        return None
    if not isinstance(raw_value, str):
        raise CastConfigError(
            f"Invalid {field_name} value: expected a path string, got {raw_value!r}. "
            f"{_REMEDIATION}"
        )
    return _require_absolute(Path(raw_value).expanduser(), field_name)


def _require_absolute(path: Path, label: str) -> Path:
    """Reject relative storage roots."""
    if not path.is_absolute():
        raise CastConfigError(
            f"Invalid {label} '{path}': storage roots must be absolute paths. {_REMEDIATION}"
        )
    return path
