"""API key resolution for the vision model."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_SECRETS_FILE = Path(__file__).parent.parent.parent / "secrets.json"
_SECRETS_PATH_ENV = "SCANSPLIT_SECRETS"
_KEY_NAMES = ("ANTHROPIC_API_KEY", "anthropic_api_key")


@dataclass
class Secrets:
    """Resolved credentials and where they came from."""

    anthropic_api_key: Optional[str] = None
    source: str = "none"  # "file", "env" or "none"


def _read_secrets_file(path: Path) -> dict:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable secrets file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring secrets file {path}: expected a JSON object")
        return {}
    return data


def load_secrets(secrets_path: Optional[Path] = None) -> Secrets:
    """Find the Anthropic API key.

    A ``secrets.json`` file wins over the ``ANTHROPIC_API_KEY`` environment
    variable. The file is looked up at ``secrets_path``, then at the path in
    ``SCANSPLIT_SECRETS``, then at the project root.
    """
    env_path = os.getenv(_SECRETS_PATH_ENV)
    path = secrets_path or (Path(env_path) if env_path else _SECRETS_FILE)

    data = _read_secrets_file(path)
    for name in _KEY_NAMES:
        value = data.get(name)
        if isinstance(value, str) and value.strip():
            logger.debug(f"Using Anthropic API key from {path}")
            return Secrets(anthropic_api_key=value.strip(), source="file")

    env_value = os.getenv("ANTHROPIC_API_KEY", "").strip()
    if env_value:
        return Secrets(anthropic_api_key=env_value, source="env")

    logger.debug("ANTHROPIC_API_KEY not found in secrets.json or environment")
    return Secrets()
