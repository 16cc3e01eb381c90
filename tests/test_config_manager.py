"""
Tests for profile loading, env substitution and validation.
"""

import json

import pytest

import config_manager
from config import load_signer_private_key, SIGNER_KEY_ENV_VAR
from config_manager import ConfigManager, reset_config_manager_instance, get_config_manager
from errors import SigningConfigurationError

from conftest import TEST_PRIVATE_KEY


def write_config(tmp_path, data):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestProfileSelection:
    def test_override_wins(self, sample_config, clean_env):
        clean_env.setenv("ACTIVE_CONFIG", "test")
        manager = ConfigManager(config_file=sample_config, config_name_override="other")
        assert manager.get_active_config_name() == "other"

    def test_active_config_env(self, sample_config, clean_env):
        clean_env.setenv("ACTIVE_CONFIG", "other")
        assert ConfigManager(config_file=sample_config).get_active_config_name() == "other"

    def test_first_profile_by_default(self, sample_config, clean_env):
        assert ConfigManager(config_file=sample_config).get_active_config_name() == "test"

    def test_unknown_profile(self, sample_config, clean_env):
        with pytest.raises(ValueError, match="not found"):
            ConfigManager(config_file=sample_config, config_name_override="nope")

    def test_config_file_from_env(self, sample_config, clean_env):
        clean_env.setenv("ATTESTOR_CONFIG_FILE", sample_config)
        assert ConfigManager().config_file == sample_config

    def test_missing_file(self, tmp_path, clean_env):
        with pytest.raises(FileNotFoundError):
            ConfigManager(config_file=str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path, clean_env):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            ConfigManager(config_file=str(path))

    def test_switch_config(self, sample_config, clean_env):
        manager = ConfigManager(config_file=sample_config)
        manager.switch_config("other")
        assert manager.get_display_name() == "Other profile"
        with pytest.raises(ValueError):
            manager.switch_config("nope")

    def test_list_configs(self, sample_config, clean_env):
        assert ConfigManager(config_file=sample_config).list_configs() == {
            "test": "Test profile",
            "other": "Other profile",
        }


class TestEnvSubstitution:
    def test_variables_are_substituted(self, tmp_path, clean_env):
        clean_env.setenv("EXPLORER_KEY", "secret-key")
        path = write_config(tmp_path, {"configs": {"p": {
            "chains": {"1": {"explorer_urls": ["https://x.test/api"], "explorer_api_keys": ["${EXPLORER_KEY}"]}},
            "criteria": [],
        }}})
        assert ConfigManager(config_file=path).get_chains()[1]["explorer_api_keys"] == ["secret-key"]

    def test_missing_variable(self, tmp_path, clean_env):
        clean_env.delenv("UNSET_ATTESTOR_VAR", raising=False)
        path = write_config(tmp_path, {"configs": {"p": {"chains": {"1": {"rpc_urls": ["${UNSET_ATTESTOR_VAR}"]}}}}})
        with pytest.raises(ValueError, match="UNSET_ATTESTOR_VAR"):
            ConfigManager(config_file=path)


class TestSettings:
    def test_chain_keys_are_ints(self, sample_config, clean_env):
        assert sorted(ConfigManager(config_file=sample_config).get_chains()) == [1, 8453]

    def test_defaults_apply(self, sample_config, clean_env):
        manager = ConfigManager(config_file=sample_config, config_name_override="test")
        assert manager.get_max_secondary_addresses() == 3
        assert manager.get_aggregation_timeout() == 5.0
        assert manager.get_max_workers() == 2
        assert manager.get_request_timeout() == 10
        assert manager.get_rpc_preference_reset_minutes() == 60

    def test_profile_overrides_defaults(self, sample_config, clean_env):
        manager = ConfigManager(config_file=sample_config, config_name_override="other")
        assert manager.get_max_secondary_addresses() == 7

    def test_null_aggregation_timeout_disables_deadline(self, tmp_path, clean_env):
        path = write_config(tmp_path, {"configs": {"p": {"chains": {}, "criteria": [], "aggregation_timeout_s": None}}})
        assert ConfigManager(config_file=path).get_aggregation_timeout() is None

    def test_criteria_are_copied(self, sample_config, clean_env):
        manager = ConfigManager(config_file=sample_config)
        manager.get_criteria().clear()
        assert len(manager.get_criteria()) == 3


class TestValidation:
    def test_sample_profile_is_valid(self, sample_config, clean_env):
        result = ConfigManager(config_file=sample_config).validate_config("test")
        assert result["valid"] is True
        assert result["errors"] == []

    def test_missing_profile(self, sample_config, clean_env):
        assert ConfigManager(config_file=sample_config).validate_config("nope")["valid"] is False

    def test_reports_problems(self, tmp_path, clean_env):
        path = write_config(tmp_path, {"configs": {"bad": {
            "chains": {
                "1": {"rpc_urls": ["ws://not-http"]},
                "mainnet": {"rpc_urls": ["https://x.test"]},
                "8453": {"explorer_urls": ["https://x.test/api"]},
            },
            "criteria": [
                {"id": "a", "type": "sender_activity", "chain_id": 8453},
                {"id": "a", "type": "sender_activity", "chain_id": 8453},
                {"id": "b", "type": "mystery", "chain_id": 1},
                {"id": "c", "type": "sender_activity", "chain_id": 10},
                {"id": "d", "type": "contract_interaction", "chain_id": 1, "params": {"contract": "0x1234"}},
                {"type": "sender_activity", "chain_id": 1},
            ],
            "max_secondary_addresses": -1,
        }}})
        result = ConfigManager(config_file=path).validate_config()
        errors = "\n".join(result["errors"])

        assert result["valid"] is False
        assert "rpc_urls must be a non-empty list" in errors
        assert "Chain key 'mainnet'" in errors
        assert "Duplicate criterion id: a" in errors
        assert "unknown type 'mystery'" in errors
        assert "chain 10 which is not configured" in errors
        assert "'d' contract must be" in errors
        assert "missing 'id'" in errors
        assert "max_secondary_addresses" in errors
        assert any("no explorer_api_keys" in w for w in result["warnings"])

    def test_shipped_local_profile_is_valid(self, clean_env):
        clean_env.setenv("ETHERSCAN_API_KEY", "test-key")
        clean_env.setenv("GRAPH_API_KEY", "graph-key")
        result = ConfigManager(config_name_override="local").validate_config()
        assert result["valid"] is True, result["errors"]

    def test_shipped_production_profile_is_valid(self, clean_env):
        clean_env.setenv("ETHERSCAN_API_KEY", "test-key")
        clean_env.setenv("GRAPH_API_KEY", "graph-key")
        result = ConfigManager(config_name_override="production").validate_config()
        assert result["valid"] is True, result["errors"]


class TestSingleton:
    def test_reset_replaces_instance(self, sample_config, clean_env, monkeypatch):
        monkeypatch.setattr(config_manager, "_config_manager_instance", None)
        manager = reset_config_manager_instance(config_name_override="other", config_file=sample_config)
        assert get_config_manager() is manager
        assert manager.get_active_config_name() == "other"


class TestSignerKey:
    def test_loaded_from_env(self, clean_env):
        clean_env.setenv(SIGNER_KEY_ENV_VAR, f"  {TEST_PRIVATE_KEY}\n")
        assert load_signer_private_key() == TEST_PRIVATE_KEY

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_key_is_fatal(self, clean_env, value):
        if value is not None:
            clean_env.setenv(SIGNER_KEY_ENV_VAR, value)
        with pytest.raises(SigningConfigurationError, match=SIGNER_KEY_ENV_VAR):
            load_signer_private_key()
