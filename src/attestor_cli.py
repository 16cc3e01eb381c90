#!/usr/bin/env python3
"""
Attestor CLI

Command line front end for the Eligibility Attestor.

Usage:
    attestor check <criterion> <address> [--addresses a,b]
    attestor verify <address> <signature> --eligible [--data X]
    attestor criteria list
    attestor config list|show|validate
    attestor signer
"""

import argparse
import json
import logging
import sys

from logger_utils import setup_logging
import config as config_module
from config_manager import get_config_manager
from attest_types import Address, parse_address_list
from attestation_signer import AttestationSigner, recover_signer
from criterion_registry import CriterionRegistry
from errors import InvalidInput, AttestationUnavailable, SigningConfigurationError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SERVER_ERROR = 1
EXIT_CLIENT_ERROR = 2


def cmd_check(args) -> int:
    """Run one eligibility check and print the signed response as JSON"""
    try:
        service = config_module.build_attestation_service(get_config_manager())
    except SigningConfigurationError as e:
        logger.error(f"Signing configuration error: {e}")
        return EXIT_SERVER_ERROR

    try:
        response = service.handle(args.address, parse_address_list(args.addresses), args.criterion)
    except InvalidInput as e:
        print(json.dumps({"error": str(e)}))
        return EXIT_CLIENT_ERROR
    except AttestationUnavailable as e:
        print(json.dumps({"error": str(e)}))
        return EXIT_SERVER_ERROR

    print(json.dumps(response.to_dict(), indent=2 if args.pretty else None))
    return EXIT_OK


def cmd_verify(args) -> int:
    """Recover the signer of a packed signature and compare it with the expected one"""
    try:
        subject = Address.parse(args.address)
        expected = Address.parse(args.expected_signer) if args.expected_signer else None
        signature = bytes.fromhex(args.signature[2:] if args.signature.startswith('0x') else args.signature)
        recovered = recover_signer(subject, args.eligible, args.data, signature)
    except (InvalidInput, ValueError) as e:
        print(f"❌ Could not verify signature: {e}")
        return EXIT_CLIENT_ERROR

    if expected is None:
        try:
            expected = Address.parse(AttestationSigner(config_module.load_signer_private_key()).address)
        except SigningConfigurationError as e:
            logger.error(f"No --expected-signer given and no signing key configured: {e}")
            return EXIT_SERVER_ERROR

    print(f"🔑 Recovered signer: {recovered}")
    if expected == Address.parse(recovered):
        print("✅ Signature matches expected signer")
        return EXIT_OK

    print(f"❌ Signature does not match expected signer {expected.checksum}")
    return EXIT_SERVER_ERROR


def cmd_criteria_list(args) -> int:
    config_manager = get_config_manager()
    # chain data is never queried while listing
    registry = CriterionRegistry.from_definitions(config_manager.get_criteria(), chain_data=None)

    print(f"📋 Criteria for {config_manager.get_display_name()}:")
    for entry in registry.list():
        wallets = "multi-wallet" if entry.supports_multi_wallet else "single-wallet"
        print(f"  {entry.criterion_id:<32} chain {entry.chain_id:<6} {wallets:<14} {entry.description}")
    return EXIT_OK


def cmd_config(args) -> int:
    config_manager = get_config_manager()

    if args.config_command == 'list':
        active = config_manager.get_active_config_name()
        print("📋 Available configurations:")
        for name, display_name in config_manager.list_configs().items():
            marker = "*" if name == active else " "
            print(f"  {marker} {name:<32} {display_name}")
        return EXIT_OK

    if args.config_command == 'show':
        print(f"🔧 Active configuration: {config_manager.get_active_config_name()} ({config_manager.get_display_name()})")
        for chain_id, chain in sorted(config_manager.get_chains().items()):
            print(f"  chain {chain_id}: {len(chain.get('rpc_urls') or [])} RPC endpoint(s), "
                  f"{len(chain.get('explorer_urls') or [])} explorer endpoint(s)")
        print(f"  criteria: {len(config_manager.get_criteria())}")
        print(f"  max secondary addresses: {config_manager.get_max_secondary_addresses()}")
        print(f"  aggregation timeout: {config_manager.get_aggregation_timeout()}s, workers: {config_manager.get_max_workers()}")
        return EXIT_OK

    if args.config_command == 'validate':
        result = config_manager.validate_config(args.config_name)
        for error in result.get('errors', []):
            print(f"❌ {error}")
        for warning in result.get('warnings', []):
            print(f"⚠️  {warning}")
        if result['valid']:
            print(f"✅ Configuration {result['config_name']} is valid")
            return EXIT_OK
        return EXIT_CLIENT_ERROR

    print("Specify a config command: list, show, validate")
    return EXIT_CLIENT_ERROR


def cmd_signer(args) -> int:
    try:
        signer = AttestationSigner(config_module.load_signer_private_key())
    except SigningConfigurationError as e:
        logger.error(f"Signing configuration error: {e}")
        return EXIT_SERVER_ERROR
    print(signer.address)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Eligibility Attestor - signed on-chain eligibility checks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  attestor check eth-whale 0xabc...                      # check one wallet
  attestor check base-gas 0xabc... --addresses 0xdef...  # check with linked wallets
  attestor verify 0xabc... 0x<sig> --eligible            # verify a signature
  attestor criteria list                                  # list configured criteria
  attestor --config local config show                     # use a specific profile
  attestor signer                                         # print the signer address
        """
    )

    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--config', type=str, help='Configuration profile to use (overrides ACTIVE_CONFIG)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    check_parser = subparsers.add_parser('check', help='Check eligibility and print a signed attestation')
    check_parser.add_argument('criterion', help='Criterion id')
    check_parser.add_argument('address', help='Primary wallet address (the attestation subject)')
    check_parser.add_argument('--addresses', type=str, help='Comma-separated linked wallet addresses')
    check_parser.add_argument('--pretty', action='store_true', help='Pretty-print the JSON response')

    verify_parser = subparsers.add_parser('verify', help='Recover and check the signer of an attestation')
    verify_parser.add_argument('address', help='Attestation subject address')
    verify_parser.add_argument('signature', help='64-byte packed signature (hex)')
    eligibility = verify_parser.add_mutually_exclusive_group(required=True)
    eligibility.add_argument('--eligible', dest='eligible', action='store_true', help='Attestation says eligible')
    eligibility.add_argument('--not-eligible', dest='eligible', action='store_false', help='Attestation says not eligible')
    verify_parser.add_argument('--data', type=str, help='Auxiliary data value returned with the attestation')
    verify_parser.add_argument('--expected-signer', type=str, help='Expected signer address (default: configured key)')

    criteria_parser = subparsers.add_parser('criteria', help='Criterion registry')
    criteria_subparsers = criteria_parser.add_subparsers(dest='criteria_command', help='Criteria commands')
    criteria_subparsers.add_parser('list', help='List configured criteria')

    config_parser = subparsers.add_parser('config', help='Configuration management')
    config_subparsers = config_parser.add_subparsers(dest='config_command', help='Config commands')
    config_subparsers.add_parser('list', help='List all available configurations')
    config_subparsers.add_parser('show', help='Show active configuration details')
    config_validate_parser = config_subparsers.add_parser('validate', help='Validate a configuration')
    config_validate_parser.add_argument('config_name', nargs='?', help='Configuration to validate (default: active config)')

    subparsers.add_parser('signer', help='Print the attestation signer address')

    return parser


COMMANDS = {
    'check': cmd_check,
    'verify': cmd_verify,
    'criteria': cmd_criteria_list,
    'config': cmd_config,
    'signer': cmd_signer,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_CLIENT_ERROR

    setup_logging(verbose=args.verbose, no_color=args.no_color)

    try:
        if args.config:
            config_module.set_global_config_override(args.config)
            logger.info(f"🔧 Using configuration: {args.config}")
        return COMMANDS[args.command](args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_SERVER_ERROR


if __name__ == "__main__":
    sys.exit(main())
