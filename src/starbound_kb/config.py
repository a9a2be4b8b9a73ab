"""Runtime configuration: database location and extraction policy."""

import os
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from starbound_kb.schemas.policy import ExtractionPolicy

# Default database path: src/starbound_kb/bundled_db (relative to this file)
DEFAULT_DB_PATH = Path(__file__).parent / "bundled_db"


class PolicyError(Exception):
    """Raised when a policy file cannot be read or fails validation."""


def get_db_path() -> Path:
    """Get database path: SBKB_DB_PATH env var or the bundled location."""
    env_path = os.environ.get("SBKB_DB_PATH")
    if env_path:
        return Path(env_path)
    return DEFAULT_DB_PATH


def get_policy_path() -> Path | None:
    """Get policy file path from SBKB_POLICY_PATH, if set."""
    env_path = os.environ.get("SBKB_POLICY_PATH")
    return Path(env_path) if env_path else None


def load_policy(path: Path | None = None) -> ExtractionPolicy:
    """
    Load the extraction policy from a YAML file.

    Args:
        path: Policy file; None means built-in defaults

    Returns:
        Validated ExtractionPolicy

    Raises:
        PolicyError: If the file is unreadable, not YAML, or invalid
    """
    if path is None:
        return ExtractionPolicy()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PolicyError(f"Failed to read policy file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise PolicyError(f"Policy file {path} is not valid YAML: {e}") from e

    if raw is None:
        return ExtractionPolicy()
    if not isinstance(raw, dict):
        raise PolicyError(f"Policy file {path} must contain a mapping.")

    try:
        return ExtractionPolicy.model_validate(raw)
    except ValidationError as e:
        first_error = e.errors()[0]
        loc = ".".join(str(part) for part in first_error.get("loc", ()))
        raise PolicyError(f"Invalid policy {loc}: {first_error.get('msg', '')}") from e
