"""
Configuration for TokenAuction deployments.

Defines auction parameters, the mock bidding token used on a fresh local
chain, and where local data lives. Values resolve in order: defaults,
then a JSON config file, then ``TOKENAUCTION_*`` environment variables
(a ``.env`` file in the working directory is honoured), then explicit
overrides such as command line flags.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tokenauction.crypto import normalize_address
from tokenauction.utils.validation import validate_address, validate_string

ENV_PREFIX = "TOKENAUCTION_"

DEFAULT_RESOURCE_NAME = "QR Destination URL"
DEFAULT_RESOURCE_VALUE = "https://qrcoin.fun"
DEFAULT_DURATION = 24 * 60 * 60
DEFAULT_DECIMALS = 18


@dataclass
class AuctionConfig:
    """Deployment and local-environment configuration"""

    # Auction parameters
    resource_name: str = DEFAULT_RESOURCE_NAME
    default_resource_value: str = DEFAULT_RESOURCE_VALUE
    auction_duration: int = DEFAULT_DURATION  # Seconds per epoch
    bidding_token_address: Optional[str] = None  # None = deploy a mock token

    # Mock token (only used when no bidding token address is given)
    token_name: str = "Mock Token"
    token_symbol: str = "MTK"
    token_decimals: int = DEFAULT_DECIMALS
    token_initial_supply: int = 1_000_000 * 10**DEFAULT_DECIMALS

    # Paths
    data_dir: Path = Path("~/.tokenauction").expanduser()
    log_dir: Path = Path("logs")

    def ensure_dirs(self):
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)


class DeploymentParameters(BaseModel):
    """
    Validated, overridable deployment parameters.

    Every field can be set from a JSON config file or from the
    environment as ``TOKENAUCTION_<FIELD_NAME>``.
    """

    model_config = ConfigDict(extra="forbid")

    resource_name: str = DEFAULT_RESOURCE_NAME
    default_resource_value: str = DEFAULT_RESOURCE_VALUE
    auction_duration: int = Field(DEFAULT_DURATION, gt=0)
    bidding_token_address: Optional[str] = None
    token_name: str = "Mock Token"
    token_symbol: str = "MTK"
    token_decimals: int = Field(DEFAULT_DECIMALS, ge=0, le=77)
    token_initial_supply: int = Field(1_000_000 * 10**DEFAULT_DECIMALS, ge=0, lt=2**256)

    @field_validator("bidding_token_address")
    @classmethod
    def _check_token_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        valid, error = validate_address(value, "bidding_token_address", allow_zero=False)
        if not valid:
            raise ValueError(error)
        return normalize_address(value)

    @field_validator("resource_name", "default_resource_value", "token_name", "token_symbol")
    @classmethod
    def _check_non_empty(cls, value: str, info) -> str:
        valid, error = validate_string(value, info.field_name)
        if not valid:
            raise ValueError(error)
        return value

    def to_config(self, data_dir: Optional[Path] = None, log_dir: Optional[Path] = None) -> AuctionConfig:
        config = AuctionConfig(**self.model_dump())
        if data_dir is not None:
            config.data_dir = Path(data_dir)
        if log_dir is not None:
            config.log_dir = Path(log_dir)
        return config


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
    data_dir: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    **overrides,
) -> AuctionConfig:
    """
    Load configuration from defaults, a JSON file and the environment.

    Args:
        config_path: Optional path to a JSON config file
        env_file: Optional .env file. Defaults to a .env in the working directory.
        data_dir: Local data directory (keeps the default when None)
        log_dir: Log directory (keeps the default when None)
        **overrides: Explicit values (e.g. from CLI flags); None values are ignored

    Returns:
        AuctionConfig instance

    Raises:
        ValueError: if the file is unreadable or any value fails validation
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    values = {}
    if config_path:
        try:
            values.update(json.loads(Path(config_path).read_text()))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f"Cannot read config file {config_path}: {exc}") from exc

    for name in DeploymentParameters.model_fields:
        env_value = os.environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value

    values.update({name: value for name, value in overrides.items() if value is not None})

    try:
        params = DeploymentParameters(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    return params.to_config(data_dir, log_dir)
