#!/usr/bin/env python3
"""
Attestation Service

Entry point for the transport layer. For one request it:
1. Resolves the criterion id to a registered criterion
2. Validates the primary and secondary addresses
3. Aggregates the criterion over all addresses
4. Signs (primary address, eligible, auxiliary) and returns result + signature

Input errors surface as InvalidInput before any chain query. Chain failures
and timeouts surface as AttestationUnavailable with a generic message; the
provider detail stays in the logs.
"""

import logging
from typing import Iterable, Optional

from attest_types import EligibilityRequest, AttestationResponse, DEFAULT_MAX_SECONDARY_ADDRESSES
from attestation_signer import AttestationSigner
from criterion_registry import CriterionRegistry
from wallet_aggregator import WalletAggregator
from errors import ChainQueryError, AggregationTimeout, AttestationUnavailable

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Please try again later"


class AttestationService:
    def __init__(self, registry: CriterionRegistry, signer: AttestationSigner,
                 aggregator: Optional[WalletAggregator] = None,
                 max_secondary_addresses: int = DEFAULT_MAX_SECONDARY_ADDRESSES):
        self.registry = registry
        self.signer = signer
        self.aggregator = aggregator or WalletAggregator()
        self.max_secondary_addresses = max_secondary_addresses

    @classmethod
    def from_config(cls, config_manager, private_key: str, chain_data=None) -> "AttestationService":
        """Wire chain data, criteria, aggregator and signer from the active configuration"""
        # signer first: a bad key must stop startup before anything else is built
        signer = AttestationSigner(private_key)

        if chain_data is None:
            from chain_data import ChainDataClient
            chain_data = ChainDataClient.from_config(config_manager)

        registry = CriterionRegistry.from_definitions(config_manager.get_criteria(), chain_data)
        aggregator = WalletAggregator(
            max_workers=config_manager.get_max_workers(),
            timeout_s=config_manager.get_aggregation_timeout()
        )
        return cls(registry, signer, aggregator, max_secondary_addresses=config_manager.get_max_secondary_addresses())

    def build_request(self, primary: str, secondary: Optional[Iterable[str]], criterion_id: str) -> EligibilityRequest:
        """Resolve and validate a raw request; raises InvalidInput without touching the chain"""
        entry = self.registry.get(criterion_id)
        request = EligibilityRequest.build(
            criterion_id, primary, secondary, max_secondary=self.max_secondary_addresses
        )
        if request.secondary and not entry.supports_multi_wallet:
            logger.debug(f"Criterion {criterion_id} is single-wallet, ignoring {len(request.secondary)} secondary address(es)")
            request = EligibilityRequest(criterion_id=criterion_id, primary=request.primary)
        return request

    def handle_request(self, request: EligibilityRequest) -> AttestationResponse:
        entry = self.registry.get(request.criterion_id)

        try:
            result = self.aggregator.aggregate(request.primary, request.secondary, entry.criterion, entry.chain_id)
        except ChainQueryError as e:
            logger.error(f"Eligibility check {request.criterion_id} failed for {request.primary}: {e}")
            raise AttestationUnavailable(GENERIC_FAILURE_MESSAGE) from e
        except AggregationTimeout as e:
            logger.error(f"Eligibility check {request.criterion_id} timed out for {request.primary}: {e}")
            raise AttestationUnavailable(GENERIC_FAILURE_MESSAGE) from e

        # always the primary address, even when a secondary wallet qualified
        signature = self.signer.sign(request.primary, result.eligible, result.auxiliary)

        logger.info(f"Attested {request.criterion_id} for {request.primary}: eligible={result.eligible}")
        return AttestationResponse(
            criterion_id=request.criterion_id,
            subject=request.primary,
            result=result,
            signature=signature
        )

    def handle(self, primary: str, secondary: Optional[Iterable[str]], criterion_id: str) -> AttestationResponse:
        """Check primary (plus secondary wallets) against criterion_id and sign the outcome"""
        return self.handle_request(self.build_request(primary, secondary, criterion_id))
