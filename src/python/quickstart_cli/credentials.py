"""Credential management via environment, config.yaml and 1Password CLI."""

import logging
import os
import subprocess
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from .models import AWSCredentials

logger = logging.getLogger(__name__)

# Path to config.yaml
CONFIG_PATH = Path(
    os.environ.get(
        "QUICKSTART_CONFIG",
        Path(__file__).parent.parent.parent.parent / "infra" / "config.yaml",
    )
)

# Working directory for Pulumi operations (also hosts the default local backend)
WORK_DIR = Path(__file__).parent.parent.parent.parent / "infra" / ".pulumi-work"


class CredentialsError(Exception):
    """Raised when credential retrieval fails."""

    pass


@dataclass
class PulumiConfig:
    """Pulumi backend configuration."""

    backend: str
    passphrase: str


@lru_cache
def _load_config() -> dict:
    """Load and cache config.yaml.

    A missing file is not an error: every value can also come from the
    environment.

    Returns:
        Parsed config dictionary

    Raises:
        CredentialsError: If config file exists but cannot be parsed
    """
    if not CONFIG_PATH.exists():
        logger.debug("No config file at %s, using environment only", CONFIG_PATH)
        return {}

    try:
        with open(CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise CredentialsError(f"Invalid YAML in {CONFIG_PATH}: {e}") from e


def _op_read(reference: str) -> str:
    """Execute 'op read' to fetch a secret from 1Password.

    Args:
        reference: 1Password secret reference (e.g., "op://vault/item/field")

    Returns:
        The secret value

    Raises:
        CredentialsError: If the op command fails or is not found
    """
    try:
        result = subprocess.run(
            ["op", "read", reference],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise CredentialsError(
            f"Failed to read 1Password reference '{reference}': {e.stderr}"
        ) from e
    except FileNotFoundError:
        raise CredentialsError(
            "1Password CLI (op) not found. Please install it: "
            "https://developer.1password.com/docs/cli/get-started/"
        ) from None


def _resolve_value(value: str) -> str:
    """Resolve a value, fetching from 1Password if it's an op:// reference."""
    if value.startswith("op://"):
        return _op_read(value)
    return value


def _lookup(env_names: tuple[str, ...], section: dict, key: str) -> str:
    """Return the first non-empty environment variable, else the config value."""
    for name in env_names:
        value = os.environ.get(name)
        if value:
            return value
    return _resolve_value(str(section.get(key) or ""))


def get_aws_credentials() -> AWSCredentials:
    """Retrieve AWS credentials from the environment or config.yaml.

    Environment variables win over config.yaml:
    AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and AWS_REGION (or
    AWS_DEFAULT_REGION).

    Returns:
        AWSCredentials with access key, secret key and region (may be None)

    Raises:
        CredentialsError: If the access key or secret key is missing
    """
    aws_config = _load_config().get("aws", {}) or {}

    access_key_id = _lookup(("AWS_ACCESS_KEY_ID",), aws_config, "access_key_id")
    secret_access_key = _lookup(
        ("AWS_SECRET_ACCESS_KEY",), aws_config, "secret_access_key"
    )
    region = _lookup(("AWS_REGION", "AWS_DEFAULT_REGION"), aws_config, "region")

    missing = [
        name
        for name, value in (
            ("AWS_ACCESS_KEY_ID", access_key_id),
            ("AWS_SECRET_ACCESS_KEY", secret_access_key),
        )
        if not value
    ]
    if missing:
        raise CredentialsError(
            f"Missing AWS credentials: {', '.join(missing)}. "
            f"Export them or set them under 'aws:' in {CONFIG_PATH}"
        )

    return AWSCredentials(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        region=region or None,
    )


def get_pulumi_config() -> PulumiConfig:
    """Retrieve Pulumi configuration from config.yaml.

    Returns:
        PulumiConfig with backend URL and secrets passphrase
    """
    pulumi_config = _load_config().get("pulumi", {}) or {}

    backend = _resolve_value(str(pulumi_config.get("backend") or ""))
    if not backend:
        backend = f"file://{WORK_DIR / 'state'}"

    passphrase = _lookup(("PULUMI_CONFIG_PASSPHRASE",), pulumi_config, "passphrase")

    return PulumiConfig(backend=backend, passphrase=passphrase)
