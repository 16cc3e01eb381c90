#!/usr/bin/env python3
"""
Eligibility Criteria

Each criterion answers one question about a single address on a single chain:

    verify(address, chain_id) -> EligibilityResult

All criteria share this contract so the aggregator and service never need to
know which rule they are running. Criteria do not retry; a failing chain
lookup raises ChainQueryError and the caller decides what that means.

Numeric thresholds are inclusive. An address with no history is simply not
eligible.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional, Union

from web3 import Web3

from attest_types import Address, EligibilityResult

logger = logging.getLogger(__name__)

NO_TRANSACTIONS_FOUND = "No transactions found"


class Criterion:
    """Base class for criteria backed by a chain-data collaborator"""

    type_key = "criterion"

    def __init__(self, chain_data):
        self.chain_data = chain_data

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {"type": self.type_key}


class SenderActivityCriterion(Criterion):
    """Eligible when the address sent at least one transaction (spent gas) on the chain"""

    type_key = "sender_activity"

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        transactions = self.chain_data.get_transactions(address.hex, chain_id)
        sent = any(tx.from_address == address.hex for tx in transactions)
        return EligibilityResult(eligible=sent)


class TransactionCountCriterion(Criterion):
    """Eligible when the account nonce is at least min_count"""

    type_key = "transaction_count"

    def __init__(self, chain_data, min_count: int, report_count: bool = False):
        super().__init__(chain_data)
        if min_count < 0:
            raise ValueError("min_count must not be negative")
        self.min_count = int(min_count)
        self.report_count = report_count

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        count = self.chain_data.get_transaction_count(address.hex, chain_id)
        auxiliary = str(count) if self.report_count else None
        return EligibilityResult(eligible=count >= self.min_count, auxiliary=auxiliary)

    def describe(self) -> Dict[str, Any]:
        return {"type": self.type_key, "min_count": self.min_count, "report_count": self.report_count}


class BalanceThresholdCriterion(Criterion):
    """Eligible when the native balance is at least min_balance_wei"""

    type_key = "native_balance"

    def __init__(self, chain_data, min_balance_wei: int):
        super().__init__(chain_data)
        if min_balance_wei < 0:
            raise ValueError("min_balance_wei must not be negative")
        self.min_balance_wei = int(min_balance_wei)

    @classmethod
    def from_ether(cls, chain_data, min_balance_ether: Union[str, int, Decimal]) -> "BalanceThresholdCriterion":
        return cls(chain_data, Web3.to_wei(Decimal(str(min_balance_ether)), 'ether'))

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        balance = self.chain_data.get_balance(address.hex, chain_id)
        return EligibilityResult(eligible=balance >= self.min_balance_wei)

    def describe(self) -> Dict[str, Any]:
        return {"type": self.type_key, "min_balance_wei": self.min_balance_wei}


class ContractInteractionCriterion(Criterion):
    """Eligible when the address called one of method_ids on contract at least min_count times"""

    type_key = "contract_interaction"

    def __init__(self, chain_data, contract: str, method_ids: Optional[List[str]] = None, min_count: int = 1):
        super().__init__(chain_data)
        self.contract = Address.parse(contract)
        self.method_ids = [m.lower() for m in (method_ids or [])]
        self.min_count = int(min_count)

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        interacted = self.chain_data.has_contract_interaction(
            address.hex, self.contract.hex, self.method_ids, self.min_count, chain_id
        )
        return EligibilityResult(eligible=bool(interacted))

    def describe(self) -> Dict[str, Any]:
        return {
            "type": self.type_key,
            "contract": self.contract.checksum,
            "method_ids": self.method_ids,
            "min_count": self.min_count
        }


class FirstTransactionCriterion(Criterion):
    """
    Eligible when the address has any transaction; the auxiliary value is the
    UTC timestamp of its earliest one (ISO-8601), which ends up hashed into the
    signed payload.
    """

    type_key = "first_transaction"

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        transactions = self.chain_data.get_transactions(address.hex, chain_id)
        if not transactions:
            return EligibilityResult(eligible=False, auxiliary=NO_TRANSACTIONS_FOUND)

        first = min(transactions, key=lambda tx: (tx.timestamp, tx.block_number))
        logger.debug(f"First transaction for {address} on chain {chain_id}: {first.hash}")
        first_date = datetime.fromtimestamp(first.timestamp, tz=timezone.utc)
        return EligibilityResult(eligible=True, auxiliary=first_date.strftime('%Y-%m-%dT%H:%M:%S.000Z'))


class ActivityWindowCriterion(Criterion):
    """Eligible when any transaction falls within [start_timestamp, end_timestamp] (unix seconds, inclusive)"""

    type_key = "activity_window"

    def __init__(self, chain_data, start_timestamp: int, end_timestamp: int):
        super().__init__(chain_data)
        if end_timestamp < start_timestamp:
            raise ValueError("end_timestamp must not be before start_timestamp")
        self.start_timestamp = int(start_timestamp)
        self.end_timestamp = int(end_timestamp)

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        transactions = self.chain_data.get_transactions(address.hex, chain_id)
        in_window = any(self.start_timestamp <= tx.timestamp <= self.end_timestamp for tx in transactions)
        return EligibilityResult(eligible=in_window)

    def describe(self) -> Dict[str, Any]:
        return {"type": self.type_key, "start_timestamp": self.start_timestamp, "end_timestamp": self.end_timestamp}


class TokenBalanceCriterion(Criterion):
    """Eligible when balanceOf(address) on an ERC-20/ERC-721 token is at least min_balance raw units"""

    type_key = "token_balance"

    def __init__(self, chain_data, token: str, min_balance: int = 1):
        super().__init__(chain_data)
        if min_balance < 0:
            raise ValueError("min_balance must not be negative")
        self.token = Address.parse(token)
        self.min_balance = int(min_balance)

    @classmethod
    def from_tokens(cls, chain_data, token: str, min_tokens: Union[str, int, Decimal],
                    decimals: int = 18) -> "TokenBalanceCriterion":
        """Threshold in whole tokens, scaled by the token's decimals"""
        scaled = Decimal(str(min_tokens)).scaleb(int(decimals))
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{min_tokens} has more precision than {decimals} decimals")
        return cls(chain_data, token, int(scaled))

    def verify(self, address: Address, chain_id: int) -> EligibilityResult:
        balance = self.chain_data.get_token_balance(address.hex, self.token.hex, chain_id)
        return EligibilityResult(eligible=balance >= self.min_balance)

    def describe(self) -> Dict[str, Any]:
        return {"type": self.type_key, "token": self.token.checksum, "min_balance": self.min_balance}
