import pytest

from token_distributor.config import Config, get_network_config, validate_network_name
from token_distributor.exceptions import ConfigError

ENV_VARS = [
    "NETWORK", "DISTRIBUTOR_PRIVATE_KEY", "RPC_ENDPOINT", "LOG_LEVEL", "LOG_TO_FILE",
    "LOG_DIR", "CONFIRMATION_BLOCKS", "CONFIRMATION_TIMEOUT", "BATCH_SIZE", "GAS_BUFFER",
    "TRANSFER_DELAY", "RESUME_DIR", "DRY_RUN_SAMPLE_SIZE", "DRY_RUN_DELAY",
]
KEY = "ab" * 32


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISTRIBUTOR_PRIVATE_KEY", KEY)


def test_defaults():
    config = Config.from_env()
    config.validate()

    assert config.network == "chronos"
    assert config.confirmation_blocks == 2
    assert config.confirmation_timeout == 300.0
    assert config.batch_size == 10
    assert config.gas_buffer_minor_units == 10 ** 18
    assert config.log_to_file is True
    assert config.endpoint == "wss://rpc.chronos.autonomys.xyz/ws"


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("NETWORK", "Mainnet")
    monkeypatch.setenv("RPC_ENDPOINT", "ws://127.0.0.1:9944")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_TO_FILE", "false")
    monkeypatch.setenv("CONFIRMATION_BLOCKS", "6")
    monkeypatch.setenv("BATCH_SIZE", "25")
    monkeypatch.setenv("GAS_BUFFER", "0.25")
    monkeypatch.setenv("TRANSFER_DELAY", "0.5")

    config = Config.from_env()
    config.validate()

    assert config.network == "mainnet"
    assert config.network_config.explorer_url == "https://autonomys.subscan.io"
    assert config.endpoint == "ws://127.0.0.1:9944"
    assert config.log_level == "debug"
    assert config.log_to_file is False
    assert config.confirmation_blocks == 6
    assert config.batch_size == 25
    assert config.gas_buffer_minor_units == 25 * 10 ** 16
    assert config.transfer_delay == 0.5


def test_missing_private_key(monkeypatch):
    monkeypatch.delenv("DISTRIBUTOR_PRIVATE_KEY")

    with pytest.raises(ConfigError, match="DISTRIBUTOR_PRIVATE_KEY is not set"):
        Config.from_env()


@pytest.mark.parametrize("name, value, message", [
    ("NETWORK", "devnet", "Invalid network: devnet"),
    ("LOG_LEVEL", "loud", "Invalid log level: loud"),
    ("BATCH_SIZE", "ten", "BATCH_SIZE must be a valid number"),
    ("CONFIRMATION_TIMEOUT", "soon", "CONFIRMATION_TIMEOUT must be a valid number"),
])
def test_invalid_environment_values(monkeypatch, name, value, message):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError, match=message):
        Config.from_env()


@pytest.mark.parametrize("overrides, message", [
    ({"distributor_private_key": "not-hex"}, "64-character hexadecimal"),
    ({"distributor_private_key": ""}, "DISTRIBUTOR_PRIVATE_KEY is required"),
    ({"confirmation_blocks": 0}, "CONFIRMATION_BLOCKS must be at least 1"),
    ({"batch_size": 0}, "BATCH_SIZE must be at least 1"),
    ({"gas_buffer": "1e18"}, "GAS_BUFFER is invalid"),
])
def test_validate_rejects_bad_values(overrides, message):
    config = Config(**{"network": "chronos", "distributor_private_key": "0x" + KEY, **overrides})

    with pytest.raises(ConfigError, match=message):
        config.validate()


def test_network_lookup():
    assert get_network_config("CHRONOS").name == "Chronos Testnet"
    assert validate_network_name("mainnet")
    assert not validate_network_name("devnet")
    with pytest.raises(ConfigError, match="Available networks: mainnet, chronos"):
        get_network_config("devnet")
