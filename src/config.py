#!/usr/bin/env python3
"""
Configuration entry points for the Eligibility Attestor

Loads configuration from:
1. Environment variables (signing key, active config selection)
2. config.json (profiles: chains, criteria, limits)
3. Defaults (as fallbacks)

The signing key is the only secret. It is read once at startup and handed to
the signer; nothing else keeps a copy.
"""

import os
from typing import Optional

from config_manager import ConfigManager, get_config_manager, reset_config_manager_instance
from errors import SigningConfigurationError

SIGNER_KEY_ENV_VAR = 'SIGNER_PRIVATE_KEY'


def load_signer_private_key(env_var: str = SIGNER_KEY_ENV_VAR) -> str:
    """Read the signing key from the environment; absence is a startup error"""
    key = os.getenv(env_var, '').strip()
    if not key:
        raise SigningConfigurationError(
            f"{env_var} environment variable is required! "
            "Copy .env.example to .env and set the attestation signing key."
        )
    return key


def set_global_config_override(config_name: Optional[str]) -> ConfigManager:
    """Select the active profile for this process (CLI --config flag)"""
    return reset_config_manager_instance(config_name_override=config_name)


def build_attestation_service(config_manager: Optional[ConfigManager] = None, chain_data=None):
    """Build a fully wired AttestationService for the active profile"""
    from attestation_service import AttestationService

    config_manager = config_manager or get_config_manager()
    return AttestationService.from_config(config_manager, load_signer_private_key(), chain_data=chain_data)
