from pathlib import Path

import pytest

from head_opener.config import BLOCKFROST_URLS, MAINNET, OpenerConfig, RetryBudget, load_config
from head_opener.errors import ConfigError

BASE_ENV = {"BLOCKFROST_API_KEY": "preprodKey"}


def test_defaults(tmp_path):
    config = OpenerConfig.from_env({**BASE_ENV, "KEYS_DIR": str(tmp_path)})

    assert config.network_id == 0
    assert config.blockfrost_url == BLOCKFROST_URLS[0]
    assert config.status_retry == RetryBudget(attempts=30, delay=2.0)
    assert config.confirm_timeout == 120.0
    assert config.confirm_poll_interval == 5.0
    alice, bob = config.participants
    assert (alice.id, alice.label, alice.http_url, alice.ws_url) == (
        1,
        "alice",
        "http://127.0.0.1:4001",
        "ws://127.0.0.1:4001",
    )
    assert (bob.http_url, bob.ws_url) == ("http://127.0.0.1:4002", "ws://127.0.0.1:4002")
    assert alice.funding_address_file == tmp_path.resolve() / "1" / "address-funding.preprod"
    assert bob.signing_key_file == tmp_path.resolve() / "2" / "cardano-funding.skey"
    assert config.controller is alice


def test_keys_dir_defaults_to_data_keys():
    config = OpenerConfig.from_env(BASE_ENV)

    assert config.keys_dir == (Path("data") / "keys").resolve()


def test_node_urls_and_websocket_derivation():
    config = OpenerConfig.from_env(
        {
            **BASE_ENV,
            "HYDRA_NODE_1_API": "https://alice.example:4443",
            "HYDRA_NODE_2_API": "http://bob.example:4002",
            "HYDRA_NODE_2_WS": "ws://bob-feed.example:9000",
        }
    )

    alice, bob = config.participants
    assert alice.ws_url == "wss://alice.example:4443"
    assert bob.ws_url == "ws://bob-feed.example:9000"


def test_single_node_variables_apply_to_the_first_participant():
    config = OpenerConfig.from_env(
        {**BASE_ENV, "HYDRA_NODE_API": "http://10.0.0.5:4001", "HYDRA_NODE_WS": "ws://10.0.0.5:5001"}
    )

    alice, bob = config.participants
    assert (alice.http_url, alice.ws_url) == ("http://10.0.0.5:4001", "ws://10.0.0.5:5001")
    assert bob.http_url == "http://127.0.0.1:4002"


def test_numeric_overrides():
    config = OpenerConfig.from_env(
        {
            **BASE_ENV,
            "HYDRA_STATUS_RETRIES": "5",
            "HYDRA_STATUS_RETRY_DELAY_MS": "250",
            "HYDRA_CONFIRM_TIMEOUT_MS": "60000",
            "HYDRA_CONFIRM_POLL_MS": "1000",
        }
    )

    assert config.status_retry == RetryBudget(attempts=5, delay=0.25)
    assert config.confirm_timeout == 60.0
    assert config.confirm_poll_interval == 1.0


def test_missing_api_key_is_rejected():
    with pytest.raises(ConfigError, match="BLOCKFROST_API_KEY"):
        OpenerConfig.from_env({})


@pytest.mark.parametrize("value", ["2", "testnet", "-1"])
def test_invalid_network_id_is_rejected(value):
    with pytest.raises(ConfigError, match="HYDRA_NETWORK_ID"):
        OpenerConfig.from_env({**BASE_ENV, "HYDRA_NETWORK_ID": value})


def test_non_integer_retry_count_is_rejected():
    with pytest.raises(ConfigError, match="HYDRA_STATUS_RETRIES"):
        OpenerConfig.from_env({**BASE_ENV, "HYDRA_STATUS_RETRIES": "many"})


def test_zero_retry_budget_is_rejected():
    with pytest.raises(ConfigError):
        OpenerConfig.from_env({**BASE_ENV, "HYDRA_STATUS_RETRIES": "0"})


def test_mainnet_uses_mainnet_addresses_and_provider(tmp_path):
    config = OpenerConfig.from_env({**BASE_ENV, "KEYS_DIR": str(tmp_path), "HYDRA_NETWORK_ID": "1"})

    assert config.network_id == MAINNET
    assert config.blockfrost_url == BLOCKFROST_URLS[MAINNET]
    assert config.participants[0].funding_address_file.name == "address-funding.mainnet"


def test_explicit_provider_url_wins():
    config = OpenerConfig.from_env({**BASE_ENV, "BLOCKFROST_URL": "http://localhost:3000/api/v0"})

    assert config.blockfrost_url == "http://localhost:3000/api/v0"


def test_yaml_overrides_environment(tmp_path):
    path = tmp_path / "opener.yaml"
    path.write_text(
        "blockfrost_api_key: fromYaml\nhydra_status_retries: 7\nhydra_node_2_api: http://bob:4002\n",
        encoding="utf-8",
    )

    config = load_config(path, environ={"BLOCKFROST_API_KEY": "fromEnv", "HYDRA_STATUS_RETRIES": "3"})

    assert config.blockfrost_api_key == "fromYaml"
    assert config.status_retry.attempts == 7
    assert config.participants[1].ws_url == "ws://bob:4002"


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "opener.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(path, environ=BASE_ENV)


def test_missing_yaml_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml", environ=BASE_ENV)


def test_participant_lookup(opener_config):
    assert opener_config.participant("bob").id == 2
    assert opener_config.participant("1").label == "alice"
    with pytest.raises(ConfigError):
        opener_config.participant("carol")
