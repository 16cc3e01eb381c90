#!/usr/bin/env python3
"""
Chain Data Client

Read-only access to chain state used by the eligibility criteria:
- transaction history (block explorer, or the user-operation subgraph for
  smart-contract wallets)
- contract interaction counts (derived from transaction history)
- native balance, nonce and ERC-20/ERC-721 balanceOf (EVM JSON-RPC)

Every failure surfaces as ChainQueryError tagged with the address and chain.
"""

import logging
from typing import Dict, List, Optional, Sequence

from web3 import Web3

from explorer_client import ExplorerClient, Transaction
from userop_client import UserOpClient
from rpc_failover import EVMProviderPool
from errors import ChainQueryError

logger = logging.getLogger(__name__)

# balanceOf(address) is shared by ERC-20 and ERC-721
BALANCE_OF_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    }
]


def count_contract_interactions(transactions: Sequence[Transaction], contract: str,
                                method_ids: Optional[Sequence[str]] = None) -> int:
    """Count transactions sent to contract calling one of method_ids (any method when empty)"""
    contract = contract.lower()
    wanted = {m.lower() for m in (method_ids or [])}
    count = 0
    for tx in transactions:
        if tx.to_address != contract:
            continue
        if wanted and tx.method_id not in wanted:
            continue
        count += 1
    return count


class ChainDataClient:
    def __init__(self, explorers: Optional[Dict[int, ExplorerClient]] = None,
                 providers: Optional[Dict[int, EVMProviderPool]] = None,
                 userop_clients: Optional[Dict[int, UserOpClient]] = None):
        self.explorers = explorers or {}
        self.providers = providers or {}
        self.userop_clients = userop_clients or {}

    @classmethod
    def from_config(cls, config_manager) -> "ChainDataClient":
        """Build explorer clients, subgraph clients and RPC pools for every configured chain"""
        explorers = {}
        providers = {}
        userop_clients = {}
        reset_minutes = config_manager.get_rpc_preference_reset_minutes()
        timeout_s = config_manager.get_request_timeout()

        for chain_id, chain in config_manager.get_chains().items():
            explorer_urls = chain.get('explorer_urls') or []
            if explorer_urls:
                explorers[chain_id] = ExplorerClient(
                    explorer_urls,
                    api_keys=chain.get('explorer_api_keys') or [],
                    timeout_s=timeout_s,
                    max_retries=config_manager.get_max_retries(),
                    retry_delay=config_manager.get_retry_delay(),
                    preference_reset_minutes=reset_minutes
                )
            rpc_urls = chain.get('rpc_urls') or []
            if rpc_urls:
                providers[chain_id] = EVMProviderPool(
                    rpc_urls,
                    request_timeout_s=timeout_s,
                    preference_reset_minutes=reset_minutes
                )
            graph_urls = chain.get('userop_graph_urls') or []
            if graph_urls:
                userop_clients[chain_id] = UserOpClient(
                    graph_urls,
                    timeout_s=timeout_s,
                    preference_reset_minutes=reset_minutes
                )

        logger.info(f"Chain data ready: explorers for {sorted(explorers)}, RPC for {sorted(providers)}, "
                    f"subgraphs for {sorted(userop_clients)}")
        return cls(explorers=explorers, providers=providers, userop_clients=userop_clients)

    def _explorer(self, address: str, chain_id: int) -> ExplorerClient:
        explorer = self.explorers.get(chain_id)
        if explorer is None:
            raise ChainQueryError(f"No block explorer configured for chain {chain_id}", address=address, chain_id=chain_id)
        return explorer

    def _provider(self, address: str, chain_id: int) -> EVMProviderPool:
        provider = self.providers.get(chain_id)
        if provider is None:
            raise ChainQueryError(f"No RPC endpoint configured for chain {chain_id}", address=address, chain_id=chain_id)
        return provider

    def is_contract(self, address: str, chain_id: int) -> bool:
        """True when address has deployed code (a smart-contract wallet)"""
        provider = self._provider(address, chain_id)
        checksum = Web3.to_checksum_address(address)
        try:
            code = provider.call(lambda w3: w3.eth.get_code(checksum), description=f"get_code({address})")
        except ConnectionError as e:
            raise ChainQueryError(f"Code lookup failed: {e}", address=address, chain_id=chain_id)
        return len(bytes(code)) > 0

    def _is_smart_wallet(self, address: str, chain_id: int) -> bool:
        if chain_id not in self.userop_clients or chain_id not in self.providers:
            return False
        try:
            return self.is_contract(address, chain_id)
        except ChainQueryError as e:
            logger.warning(f"Could not determine wallet type of {address} on chain {chain_id}, using explorer: {e}")
            return False

    def get_transactions(self, address: str, chain_id: int) -> List[Transaction]:
        """Transaction history: user operations for smart-contract wallets, explorer txlist otherwise"""
        if self._is_smart_wallet(address, chain_id):
            logger.debug(f"{address} is a smart-contract wallet on chain {chain_id}, reading user operations")
            try:
                return self.userop_clients[chain_id].get_transactions(address, chain_id)
            except ChainQueryError as e:
                if chain_id not in self.explorers:
                    raise
                logger.warning(f"User operation lookup failed for {address}, falling back to explorer: {e}")
        return self._explorer(address, chain_id).get_transactions(address, chain_id)

    def has_contract_interaction(self, address: str, contract: str, method_ids: Optional[Sequence[str]] = None,
                                 min_count: int = 1, chain_id: int = 1) -> bool:
        transactions = self.get_transactions(address, chain_id)
        count = count_contract_interactions(transactions, contract, method_ids)
        logger.debug(f"{address} called {contract} {count} time(s) on chain {chain_id}")
        return count >= min_count

    def get_balance(self, address: str, chain_id: int) -> int:
        """Native balance in wei"""
        provider = self._provider(address, chain_id)
        checksum = Web3.to_checksum_address(address)
        try:
            return int(provider.call(lambda w3: w3.eth.get_balance(checksum), description=f"get_balance({address})"))
        except (ConnectionError, ValueError, TypeError) as e:
            raise ChainQueryError(f"Balance lookup failed: {e}", address=address, chain_id=chain_id)

    def get_transaction_count(self, address: str, chain_id: int) -> int:
        provider = self._provider(address, chain_id)
        checksum = Web3.to_checksum_address(address)
        try:
            return int(provider.call(lambda w3: w3.eth.get_transaction_count(checksum), description=f"get_transaction_count({address})"))
        except (ConnectionError, ValueError, TypeError) as e:
            raise ChainQueryError(f"Transaction count lookup failed: {e}", address=address, chain_id=chain_id)

    def get_token_balance(self, address: str, token: str, chain_id: int) -> int:
        """balanceOf(address) on an ERC-20 or ERC-721 token contract, in raw units"""
        provider = self._provider(address, chain_id)
        holder = Web3.to_checksum_address(address)
        try:
            return int(provider.with_contract_call(
                Web3.to_checksum_address(token),
                BALANCE_OF_ABI,
                lambda contract: contract.functions.balanceOf(holder).call(),
                description=f"balanceOf({address}) on {token}"
            ))
        except (ConnectionError, ValueError, TypeError) as e:
            raise ChainQueryError(f"Token balance lookup failed: {e}", address=address, chain_id=chain_id)
