import json
import os
import sys
import threading
from typing import Dict, List, Optional, Set

import pytest
import requests

# modules live flat under src/
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from attest_types import Address
from attestation_signer import AttestationSigner
from errors import ChainQueryError
from explorer_client import Transaction

# well-known throwaway key, never holds funds
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_SIGNER_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

PRIMARY = "0x1111111111111111111111111111111111111111"
SECONDARY = "0x2222222222222222222222222222222222222222"
TERTIARY = "0x3333333333333333333333333333333333333333"


class FakeChainData:
    """In-memory chain-data collaborator that counts every query it serves"""

    def __init__(self, balances: Optional[Dict[str, int]] = None, nonces: Optional[Dict[str, int]] = None,
                 transactions: Optional[Dict[str, List[Transaction]]] = None, failing: Optional[Set[str]] = None,
                 token_balances: Optional[Dict[str, int]] = None):
        self.balances = {k.lower(): v for k, v in (balances or {}).items()}
        self.nonces = {k.lower(): v for k, v in (nonces or {}).items()}
        self.transactions = {k.lower(): v for k, v in (transactions or {}).items()}
        self.token_balances = {k.lower(): v for k, v in (token_balances or {}).items()}
        self.failing = {a.lower() for a in (failing or set())}
        self.token_queries: List[str] = []
        self.queries: List[str] = []
        self._lock = threading.Lock()

    @property
    def query_count(self) -> int:
        return len(self.queries)

    def _record(self, address: str, chain_id: int):
        with self._lock:
            self.queries.append(address.lower())
        if address.lower() in self.failing:
            raise ChainQueryError("provider unavailable", address=address, chain_id=chain_id)

    def get_transactions(self, address: str, chain_id: int) -> List[Transaction]:
        self._record(address, chain_id)
        return list(self.transactions.get(address.lower(), []))

    def has_contract_interaction(self, address, contract, method_ids=None, min_count=1, chain_id=1) -> bool:
        self._record(address, chain_id)
        wanted = {m.lower() for m in (method_ids or [])}
        count = sum(
            1 for tx in self.transactions.get(address.lower(), [])
            if tx.to_address == contract.lower() and (not wanted or tx.method_id in wanted)
        )
        return count >= min_count

    def get_balance(self, address: str, chain_id: int) -> int:
        self._record(address, chain_id)
        return self.balances.get(address.lower(), 0)

    def get_transaction_count(self, address: str, chain_id: int) -> int:
        self._record(address, chain_id)
        return self.nonces.get(address.lower(), 0)

    def get_token_balance(self, address: str, token: str, chain_id: int) -> int:
        self._record(address, chain_id)
        self.token_queries.append(token.lower())
        return self.token_balances.get(address.lower(), 0)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def make_tx(from_address: str, to_address: str = "0x000000000000000000000000000000000000dead",
            timestamp: int = 1704067200, method_id: str = "0x", block_number: int = 1) -> Transaction:
    return Transaction(
        hash="0x" + "ab" * 32,
        from_address=from_address.lower(),
        to_address=to_address.lower(),
        block_number=block_number,
        timestamp=timestamp,
        method_id=method_id.lower()
    )


@pytest.fixture
def signer():
    return AttestationSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def primary():
    return Address.parse(PRIMARY)


@pytest.fixture
def secondary():
    return Address.parse(SECONDARY)


@pytest.fixture
def tertiary():
    return Address.parse(TERTIARY)


@pytest.fixture
def sample_config(tmp_path):
    """Write a two-profile config file and return its absolute path"""
    data = {
        "defaults": {
            "max_secondary_addresses": 3,
            "aggregation_timeout_s": 5,
            "max_workers": 2
        },
        "configs": {
            "test": {
                "display_name": "Test profile",
                "chains": {
                    "1": {"rpc_urls": ["http://127.0.0.1:8545"], "explorer_urls": ["http://127.0.0.1:9000/api"],
                          "explorer_api_keys": ["key-1"],
                          "userop_graph_urls": ["http://127.0.0.1:8000/subgraphs/name/userops"]},
                    "8453": {"explorer_urls": ["http://127.0.0.1:9001/api"], "explorer_api_keys": ["key-2"]}
                },
                "criteria": [
                    {"id": "eth-whale", "type": "native_balance", "chain_id": 1,
                     "description": "Holds at least 10 ETH", "params": {"min_balance_ether": "10"}},
                    {"id": "base-gas", "type": "sender_activity", "chain_id": 8453,
                     "description": "Spent gas on Base", "multi_wallet": False},
                    {"id": "tx-count", "type": "transaction_count", "chain_id": 1,
                     "description": "At least 5 transactions", "params": {"min_count": 5, "report_count": True}}
                ]
            },
            "other": {
                "display_name": "Other profile",
                "chains": {"10": {"rpc_urls": ["http://127.0.0.1:8546"]}},
                "criteria": [
                    {"id": "op-nonce", "type": "transaction_count", "chain_id": 10, "params": {"min_count": 1}}
                ],
                "max_secondary_addresses": 7
            }
        }
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return str(path)


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv('ACTIVE_CONFIG', raising=False)
    monkeypatch.delenv('SIGNER_PRIVATE_KEY', raising=False)
    monkeypatch.delenv('ATTESTOR_CONFIG_FILE', raising=False)
    return monkeypatch
