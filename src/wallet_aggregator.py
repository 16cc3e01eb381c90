#!/usr/bin/env python3
"""
Wallet Aggregator

Runs one criterion over a primary address and its linked secondary addresses
and folds the answers into a single decision:

- eligible if any address is eligible
- auxiliary value from the first eligible address, in request order
  (primary, then secondaries); otherwise the primary's own value
- a ChainQueryError for one address counts as "not eligible" for that address,
  unless every address failed, in which case the aggregation fails

Checks may run concurrently, but results are always folded in request order so
the chosen auxiliary value never depends on which lookup returned first.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Sequence, Union

from attest_types import Address, EligibilityResult
from errors import ChainQueryError, AggregationTimeout

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

# per-address outcome: a result, or the ChainQueryError it raised
Outcome = Union[EligibilityResult, ChainQueryError]


def fold_outcomes(addresses: Sequence[Address], outcomes: Sequence[Outcome]) -> EligibilityResult:
    """Fold per-address outcomes (same order as addresses) into one result"""
    failures = [o for o in outcomes if isinstance(o, ChainQueryError)]
    if outcomes and len(failures) == len(outcomes):
        raise ChainQueryError(
            f"Chain query failed for all {len(outcomes)} address(es)",
            address=addresses[0].hex if addresses else None,
            chain_id=failures[0].chain_id
        )

    for address, outcome in zip(addresses, outcomes):
        if isinstance(outcome, EligibilityResult) and outcome.eligible:
            logger.debug(f"Eligibility established via {address}")
            return EligibilityResult(eligible=True, auxiliary=outcome.auxiliary)

    primary_outcome = outcomes[0] if outcomes else None
    auxiliary = primary_outcome.auxiliary if isinstance(primary_outcome, EligibilityResult) else None
    return EligibilityResult(eligible=False, auxiliary=auxiliary)


class WalletAggregator:
    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, timeout_s: Optional[float] = None):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.timeout_s = timeout_s

    def _check(self, criterion, address: Address, chain_id: int) -> Outcome:
        try:
            return criterion.verify(address, chain_id)
        except ChainQueryError as e:
            logger.warning(f"Chain query failed for {address} on chain {chain_id}: {e}")
            return e

    def _run_sequential(self, criterion, addresses: Sequence[Address], chain_id: int) -> List[Outcome]:
        outcomes: List[Outcome] = []
        for address in addresses:
            outcome = self._check(criterion, address, chain_id)
            outcomes.append(outcome)
            if isinstance(outcome, EligibilityResult) and outcome.eligible:
                break
        return outcomes

    def _run_concurrent(self, criterion, addresses: Sequence[Address], chain_id: int) -> List[Outcome]:
        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(addresses)))
        try:
            futures = [executor.submit(self._check, criterion, address, chain_id) for address in addresses]
            done, pending = wait(futures, timeout=self.timeout_s)
            if pending:
                for future in pending:
                    future.cancel()
                raise AggregationTimeout(
                    f"{len(pending)} of {len(futures)} address check(s) did not finish within {self.timeout_s}s"
                )
            # request order, not completion order
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def aggregate(self, primary: Address, secondary: Sequence[Address], criterion, chain_id: int) -> EligibilityResult:
        """Evaluate criterion for primary and every secondary address and fold the results"""
        addresses = [primary] + [a for a in secondary if a != primary]

        # the deadline is only enforceable on the executor path
        if self.timeout_s is None and (self.max_workers == 1 or len(addresses) == 1):
            outcomes = self._run_sequential(criterion, addresses, chain_id)
        else:
            outcomes = self._run_concurrent(criterion, addresses, chain_id)

        result = fold_outcomes(addresses[:len(outcomes)], outcomes)
        logger.info(f"Aggregated {len(outcomes)} address(es) for {primary} on chain {chain_id}: eligible={result.eligible}")
        return result
