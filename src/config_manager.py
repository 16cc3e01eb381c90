#!/usr/bin/env python3
"""
Configuration Manager for the Eligibility Attestor

Supports multiple attestor profiles with:
1. Environment variable substitution (${VAR} patterns)
2. Configuration validation
3. Per-profile chain endpoints and criterion definitions
"""

import os
import json
import re
import logging
from typing import Dict, Any, List, Optional
from pathlib import Path

logger = logging.getLogger(__name__)

# load environment variables from .env file
try:
    from dotenv import load_dotenv
    # look for .env file in the project root
    env_path = Path(__file__).parent.parent / '.env'
    load_dotenv(env_path)
except ImportError:
    print("Warning: python-dotenv not installed. Install with: pip install python-dotenv")

DEFAULT_CONFIG_FILE = "config.json"


class ConfigManager:
    """Configuration manager supporting multiple attestor profiles"""

    def __init__(self, config_file: Optional[str] = None, config_name_override: Optional[str] = None):
        self.config_file = config_file or os.getenv('ATTESTOR_CONFIG_FILE') or DEFAULT_CONFIG_FILE
        self._config_data = None
        self._active_config_name = None
        self._active_config = None
        self._config_name_override = config_name_override
        self._load_config()
        self._load_active_config()

    def _load_config(self):
        """Load configuration from JSON file (relative paths resolve from the project root)"""
        config_path = Path(__file__).parent.parent / self.config_file

        try:
            with open(config_path, 'r') as f:
                content = f.read()
                # substitute environment variables
                content = self._substitute_env_vars(content)
                self._config_data = json.loads(content)
        except FileNotFoundError:
            raise FileNotFoundError(f"Config file {config_path} not found")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {config_path}: {e}")

    def _substitute_env_vars(self, content: str) -> str:
        """Substitute ${VAR} patterns with environment variables"""
        def replace_var(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable {var_name} is not set")
            return env_value

        # pattern to match ${VAR_NAME}
        pattern = r'\$\{([A-Z_][A-Z0-9_]*)\}'
        return re.sub(pattern, replace_var, content)

    def _load_active_config(self):
        """Load the active profile based on override, ACTIVE_CONFIG env var, or default"""
        if self._config_name_override:
            self._active_config_name = self._config_name_override
        else:
            self._active_config_name = os.getenv('ACTIVE_CONFIG')

        if not self._active_config_name:
            # try to use the first available config as default
            configs = self.get_available_configs()
            if configs:
                self._active_config_name = list(configs.keys())[0]
                logger.warning(f"ACTIVE_CONFIG not set, using first available config: {self._active_config_name}")
            else:
                raise ValueError("No configurations available and ACTIVE_CONFIG not set")

        if self._active_config_name not in self.get_available_configs():
            available = list(self.get_available_configs().keys())
            raise ValueError(f"Active config '{self._active_config_name}' not found. Available: {available}")

        self._active_config = self.get_available_configs()[self._active_config_name]

    def get_available_configs(self) -> Dict[str, Any]:
        """Get all available configurations"""
        return self._config_data.get("configs", {})

    def get_active_config_name(self) -> str:
        return self._active_config_name

    def get_active_config(self) -> Dict[str, Any]:
        return self._active_config.copy()

    def list_configs(self) -> Dict[str, str]:
        """List all available configurations with display names"""
        configs = {}
        for name, config in self.get_available_configs().items():
            configs[name] = config.get('display_name', name)
        return configs

    def switch_config(self, config_name: str):
        """Switch to a different configuration (current process only)"""
        if config_name not in self.get_available_configs():
            available = list(self.get_available_configs().keys())
            raise ValueError(f"Config '{config_name}' not found. Available: {available}")

        self._config_name_override = config_name
        self._load_active_config()
        logger.info(f"Switched to configuration: {config_name}")
        return True

    def validate_config(self, config_name: Optional[str] = None) -> Dict[str, Any]:
        """Validate a configuration and return validation results"""
        config = self.get_available_configs().get(config_name or self._active_config_name)

        if not config:
            return {"valid": False, "errors": ["Configuration not found"]}

        errors = []
        warnings = []

        def _is_http_url(s: str) -> bool:
            return isinstance(s, str) and s.startswith(('http://', 'https://'))

        chains = config.get('chains')
        if not isinstance(chains, dict) or not chains:
            errors.append("Missing required field: chains")
            chains = {}

        for chain_key, chain in chains.items():
            if not str(chain_key).isdigit() or int(chain_key) <= 0:
                errors.append(f"Chain key '{chain_key}' must be a positive integer chain id")
                continue
            for field_name in ('rpc_urls', 'explorer_urls', 'userop_graph_urls'):
                urls = chain.get(field_name)
                if urls is None:
                    continue
                if not isinstance(urls, list) or not urls or not all(_is_http_url(u) for u in urls):
                    errors.append(f"chains.{chain_key}.{field_name} must be a non-empty list of HTTP/HTTPS URLs")
            if not chain.get('rpc_urls') and not chain.get('explorer_urls'):
                warnings.append(f"Chain {chain_key} has neither rpc_urls nor explorer_urls")
            if chain.get('explorer_urls') and not chain.get('explorer_api_keys'):
                warnings.append(f"Chain {chain_key} has no explorer_api_keys; requests may be throttled")
            if chain.get('userop_graph_urls') and not chain.get('rpc_urls'):
                warnings.append(f"Chain {chain_key} has userop_graph_urls but no rpc_urls; smart-contract wallets cannot be detected")

        criteria = config.get('criteria')
        if not isinstance(criteria, list) or not criteria:
            errors.append("Missing required field: criteria")
            criteria = []

        from criterion_registry import CRITERION_TYPES

        seen_ids = set()
        for i, definition in enumerate(criteria):
            criterion_id = definition.get('id')
            if not criterion_id:
                errors.append(f"Criterion #{i} is missing 'id'")
                continue
            if criterion_id in seen_ids:
                errors.append(f"Duplicate criterion id: {criterion_id}")
            seen_ids.add(criterion_id)
            if definition.get('type') not in CRITERION_TYPES:
                errors.append(f"Criterion '{criterion_id}' has unknown type '{definition.get('type')}'")
            chain_id = definition.get('chain_id')
            if chain_id is None:
                errors.append(f"Criterion '{criterion_id}' is missing 'chain_id'")
            elif str(chain_id) not in {str(k) for k in chains}:
                errors.append(f"Criterion '{criterion_id}' uses chain {chain_id} which is not configured")
            for param in ('contract', 'token'):
                value = definition.get('params', {}).get(param)
                if value is not None and (not isinstance(value, str) or not value.startswith('0x') or len(value) != 42):
                    errors.append(f"Criterion '{criterion_id}' {param} must be a valid Ethereum address (0x...)")

        max_secondary = config.get('max_secondary_addresses')
        if max_secondary is not None and (not isinstance(max_secondary, int) or max_secondary < 0):
            errors.append("max_secondary_addresses must be a non-negative integer")

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
            "config_name": config_name or self._active_config_name
        }

    # configuration getters using active config

    def get_display_name(self) -> str:
        return self._active_config.get('display_name', self._active_config_name)

    def get_chains(self) -> Dict[int, Dict[str, Any]]:
        """Get chain endpoint settings keyed by integer chain id"""
        return {int(k): v for k, v in self._active_config.get('chains', {}).items()}

    def get_criteria(self) -> List[Dict[str, Any]]:
        return list(self._active_config.get('criteria', []))

    def get_defaults(self) -> Dict[str, Any]:
        return self._config_data.get("defaults", {})

    def _get_setting(self, name: str, default: Any) -> Any:
        """Profile value, then top-level defaults, then the built-in default"""
        if name in self._active_config:
            return self._active_config[name]
        return self.get_defaults().get(name, default)

    def get_max_secondary_addresses(self) -> int:
        return int(self._get_setting('max_secondary_addresses', 10))

    def get_request_timeout(self) -> int:
        """Get per-request HTTP/RPC timeout in seconds"""
        return int(self._get_setting('request_timeout_s', 10))

    def get_aggregation_timeout(self) -> Optional[float]:
        """Get deadline for one multi-wallet check in seconds (None disables it)"""
        value = self._get_setting('aggregation_timeout_s', 30)
        return None if value is None else float(value)

    def get_max_workers(self) -> int:
        return int(self._get_setting('max_workers', 4))

    def get_rpc_preference_reset_minutes(self) -> int:
        """Get preference reset interval (minutes) for endpoint selection (default 60)"""
        try:
            return int(self._get_setting('rpc_preference_reset_minutes', 60))
        except (TypeError, ValueError):
            return 60

    def get_max_retries(self) -> int:
        """Get maximum number of explorer rate-limit retries"""
        return int(self._get_setting('max_retries', 3))

    def get_retry_delay(self) -> float:
        """Get explorer rate-limit retry delay in seconds"""
        return float(self._get_setting('retry_delay', 0.2))


# Global configuration manager instance
_config_manager_instance = None


def get_config_manager() -> ConfigManager:
    """
    Get the global configuration manager instance (singleton pattern)
    """
    global _config_manager_instance

    if _config_manager_instance is None:
        _config_manager_instance = ConfigManager()

    return _config_manager_instance


def reset_config_manager_instance(config_name_override: Optional[str] = None, config_file: Optional[str] = None):
    """
    Reset the global configuration manager instance with optional config override
    """
    global _config_manager_instance
    _config_manager_instance = ConfigManager(config_file=config_file, config_name_override=config_name_override)
    return _config_manager_instance
