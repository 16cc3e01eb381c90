#!/usr/bin/env python3
"""
Criterion Registry

Maps criterion ids to a configured criterion and the chain it runs against.
Entries come from the "criteria" list of the active configuration profile:

    {"id": "eth-whale", "type": "native_balance", "chain_id": 1,
     "description": "...", "multi_wallet": true,
     "params": {"min_balance_ether": "10"}}
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Callable, List

from criteria import (
    Criterion,
    SenderActivityCriterion,
    TransactionCountCriterion,
    BalanceThresholdCriterion,
    ContractInteractionCriterion,
    FirstTransactionCriterion,
    ActivityWindowCriterion,
    TokenBalanceCriterion,
)
from errors import UnknownCriterionError, InvalidInput

logger = logging.getLogger(__name__)


def _build_native_balance(chain_data, params: Dict[str, Any]) -> Criterion:
    if 'min_balance_wei' in params:
        return BalanceThresholdCriterion(chain_data, int(params['min_balance_wei']))
    if 'min_balance_ether' in params:
        return BalanceThresholdCriterion.from_ether(chain_data, params['min_balance_ether'])
    raise ValueError("native_balance requires min_balance_wei or min_balance_ether")


def _build_token_balance(chain_data, params: Dict[str, Any]) -> Criterion:
    if 'min_tokens' in params:
        return TokenBalanceCriterion.from_tokens(
            chain_data, params['token'], params['min_tokens'], decimals=int(params.get('decimals', 18))
        )
    return TokenBalanceCriterion(chain_data, params['token'], int(params.get('min_balance', 1)))


def _build_contract_interaction(chain_data, params: Dict[str, Any]) -> Criterion:
    return ContractInteractionCriterion(
        chain_data,
        contract=params['contract'],
        method_ids=params.get('method_ids', []),
        min_count=params.get('min_count', 1)
    )


CRITERION_TYPES: Dict[str, Callable[[Any, Dict[str, Any]], Criterion]] = {
    'sender_activity': lambda chain_data, params: SenderActivityCriterion(chain_data),
    'transaction_count': lambda chain_data, params: TransactionCountCriterion(
        chain_data, int(params['min_count']), report_count=bool(params.get('report_count', False))
    ),
    'native_balance': _build_native_balance,
    'contract_interaction': _build_contract_interaction,
    'first_transaction': lambda chain_data, params: FirstTransactionCriterion(chain_data),
    'activity_window': lambda chain_data, params: ActivityWindowCriterion(
        chain_data, int(params['start_timestamp']), int(params['end_timestamp'])
    ),
    'token_balance': _build_token_balance,
}


@dataclass(frozen=True)
class RegisteredCriterion:
    criterion_id: str
    criterion: Criterion
    chain_id: int
    description: str = ""
    supports_multi_wallet: bool = True

    def summary(self) -> Dict[str, Any]:
        summary = {
            "id": self.criterion_id,
            "chain_id": self.chain_id,
            "description": self.description,
            "multi_wallet": self.supports_multi_wallet,
        }
        summary.update(self.criterion.describe())
        return summary


class CriterionRegistry:
    def __init__(self):
        self._entries: Dict[str, RegisteredCriterion] = {}

    def register(self, criterion_id: str, criterion: Criterion, chain_id: int,
                 description: str = "", supports_multi_wallet: bool = True) -> RegisteredCriterion:
        if criterion_id in self._entries:
            raise ValueError(f"Criterion '{criterion_id}' is already registered")
        if int(chain_id) <= 0:
            raise ValueError(f"Criterion '{criterion_id}' needs a positive chain id, got {chain_id}")

        entry = RegisteredCriterion(
            criterion_id=criterion_id,
            criterion=criterion,
            chain_id=int(chain_id),
            description=description,
            supports_multi_wallet=supports_multi_wallet
        )
        self._entries[criterion_id] = entry
        return entry

    def get(self, criterion_id: str) -> RegisteredCriterion:
        entry = self._entries.get(criterion_id)
        if entry is None:
            raise UnknownCriterionError(criterion_id)
        return entry

    def __contains__(self, criterion_id: str) -> bool:
        return criterion_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def list(self) -> List[RegisteredCriterion]:
        return [self._entries[k] for k in sorted(self._entries)]

    @classmethod
    def from_definitions(cls, definitions: List[Dict[str, Any]], chain_data) -> "CriterionRegistry":
        """Build a registry from criterion definitions; raises ValueError on bad entries"""
        registry = cls()
        for i, definition in enumerate(definitions):
            criterion_id = definition.get('id')
            type_key = definition.get('type')
            if not criterion_id:
                raise ValueError(f"Criterion definition #{i} is missing 'id'")
            if type_key not in CRITERION_TYPES:
                raise ValueError(f"Criterion '{criterion_id}' has unknown type '{type_key}'. Available: {sorted(CRITERION_TYPES)}")
            if 'chain_id' not in definition:
                raise ValueError(f"Criterion '{criterion_id}' is missing 'chain_id'")

            try:
                criterion = CRITERION_TYPES[type_key](chain_data, definition.get('params', {}))
            except KeyError as e:
                raise ValueError(f"Criterion '{criterion_id}' is missing parameter {e}")
            except InvalidInput as e:
                raise ValueError(f"Criterion '{criterion_id}' has an invalid parameter: {e}")

            registry.register(
                criterion_id,
                criterion,
                chain_id=int(definition['chain_id']),
                description=definition.get('description', ''),
                supports_multi_wallet=bool(definition.get('multi_wallet', True))
            )

        logger.info(f"Registered {len(registry)} criteria")
        return registry
