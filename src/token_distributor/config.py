import os
import re
from dataclasses import dataclass
from typing import Dict, Optional
from dotenv import load_dotenv

from .exceptions import ConfigError, InvalidAmountFormat
from .utils import to_minor_units

# Load environment variables from .env file
load_dotenv()


@dataclass(frozen=True)
class NetworkConfig:
    """Connection and explorer details for a network."""
    name: str
    rpc_endpoint: str
    explorer_url: str


NETWORKS: Dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(
        name="Autonomys Mainnet",
        rpc_endpoint="wss://rpc.mainnet.autonomys.xyz/ws",
        explorer_url="https://autonomys.subscan.io",
    ),
    "chronos": NetworkConfig(
        name="Chronos Testnet",
        rpc_endpoint="wss://rpc.chronos.autonomys.xyz/ws",
        explorer_url="https://autonomys-chronos.subscan.io",
    ),
}

LOG_LEVELS = ("error", "warn", "info", "verbose", "debug")

_PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def get_network_config(network_name: str) -> NetworkConfig:
    """Look up a network by name (case-insensitive)."""
    network = NETWORKS.get(network_name.lower())
    if network is None:
        raise ConfigError(
            f"Unknown network: {network_name}. "
            f"Available networks: {', '.join(NETWORKS)}")
    return network


def validate_network_name(network_name: str) -> bool:
    return network_name.lower() in NETWORKS


def _env_str(name: str, default: Optional[str] = None) -> str:
    value = os.getenv(name)
    if not value:
        if default is None:
            raise ConfigError(
                f"Required environment variable {name} is not set")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(
            f"Environment variable {name} must be a valid number") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(
            f"Environment variable {name} must be a valid number") from None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    return value.lower() == "true"


@dataclass
class Config:
    """Application configuration."""

    # Network
    network: str
    distributor_private_key: str
    rpc_endpoint: Optional[str] = None

    # Logging
    log_level: str = "info"
    log_to_file: bool = True
    log_dir: str = "logs"

    # Distribution settings
    confirmation_blocks: int = 2
    confirmation_timeout: float = 300.0  # seconds
    batch_size: int = 10
    gas_buffer: str = "1"  # tokens reserved on top of the distribution total
    transfer_delay: float = 1.0  # seconds between transfers
    resume_dir: str = ".resume"

    # Dry run preview
    dry_run_sample_size: int = 5
    dry_run_delay: float = 1.0

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        network = _env_str("NETWORK", "chronos")
        if not validate_network_name(network):
            raise ConfigError(
                f"Invalid network: {network}. Must be one of: {', '.join(NETWORKS)}")

        log_level = _env_str("LOG_LEVEL", "info").lower()
        if log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level: {log_level}. Must be one of: {', '.join(LOG_LEVELS)}")

        return cls(
            network=network.lower(),
            distributor_private_key=_env_str("DISTRIBUTOR_PRIVATE_KEY"),
            rpc_endpoint=os.getenv("RPC_ENDPOINT") or None,
            log_level=log_level,
            log_to_file=_env_bool("LOG_TO_FILE", True),
            log_dir=_env_str("LOG_DIR", "logs"),
            confirmation_blocks=_env_int("CONFIRMATION_BLOCKS", 2),
            confirmation_timeout=_env_float("CONFIRMATION_TIMEOUT", 300.0),
            batch_size=_env_int("BATCH_SIZE", 10),
            gas_buffer=_env_str("GAS_BUFFER", "1"),
            transfer_delay=_env_float("TRANSFER_DELAY", 1.0),
            resume_dir=_env_str("RESUME_DIR", ".resume"),
            dry_run_sample_size=_env_int("DRY_RUN_SAMPLE_SIZE", 5),
            dry_run_delay=_env_float("DRY_RUN_DELAY", 1.0),
        )

    def validate(self) -> None:
        """Check values that from_env cannot check on its own."""
        if not self.distributor_private_key:
            raise ConfigError("DISTRIBUTOR_PRIVATE_KEY is required")

        if not _PRIVATE_KEY_PATTERN.match(self.distributor_private_key.strip()):
            raise ConfigError(
                "DISTRIBUTOR_PRIVATE_KEY must be a valid 64-character hexadecimal "
                "private key (optionally prefixed with 0x)")

        if self.confirmation_blocks < 1:
            raise ConfigError("CONFIRMATION_BLOCKS must be at least 1")

        if self.batch_size < 1:
            raise ConfigError("BATCH_SIZE must be at least 1")

        try:
            to_minor_units(self.gas_buffer)
        except InvalidAmountFormat as e:
            raise ConfigError(f"GAS_BUFFER is invalid: {e}") from e

    @property
    def network_config(self) -> NetworkConfig:
        return get_network_config(self.network)

    @property
    def endpoint(self) -> str:
        """RPC endpoint, falling back to the network default."""
        return self.rpc_endpoint or self.network_config.rpc_endpoint

    @property
    def gas_buffer_minor_units(self) -> int:
        return to_minor_units(self.gas_buffer)
