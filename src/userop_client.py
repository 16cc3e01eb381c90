#!/usr/bin/env python3
"""
UserOp Client

Transaction history for smart-contract (ERC-4337) wallets. Such wallets never
appear as `from` in an explorer txlist; their activity lives in user
operations, read here from an account-abstraction subgraph over GraphQL.

Each user operation is normalised to the same Transaction record the explorer
client produces. The inner call target and method id are sliced out of the
operation's callData (execute(address,uint256,bytes) wrapped by handleOps).
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from explorer_client import Transaction
from rpc_failover import HttpEndpointPool
from errors import ChainQueryError

logger = logging.getLogger(__name__)

USEROPS_PAGE_SIZE = 1000

ADDRESS_ACTIVITY_QUERY = """
query AddressActivityQuery($address: Bytes, $first: Int, $skip: Int) {
  userOps(first: $first, skip: $skip, orderBy: blockTime, orderDirection: asc,
          where: { or: [{ sender: $address }, { target: $address }] }) {
    sender
    target
    success
    blockNumber
    blockTime
    userOpHash
    callData
  }
}
"""

# hex-character offsets into callData (including the 0x prefix)
_TARGET_SLICE = slice(226, 266)
_METHOD_SLICE = slice(458, 466)


def extract_call_target(call_data: Optional[str]) -> Tuple[str, str]:
    """Return (contract address, method id) of the inner call, or ("", "0x") when absent"""
    if not call_data or not call_data.startswith('0x') or len(call_data) < _TARGET_SLICE.stop:
        return "", "0x"

    target = "0x" + call_data[_TARGET_SLICE].lower()
    if len(call_data) >= _METHOD_SLICE.stop:
        return target, "0x" + call_data[_METHOD_SLICE].lower()
    return target, "0x"


def user_op_to_transaction(op: Dict[str, Any]) -> Transaction:
    target, method_id = extract_call_target(op.get('callData'))
    return Transaction(
        hash=op['userOpHash'],
        from_address=(op.get('sender') or '').lower(),
        to_address=target,
        block_number=int(op['blockNumber']),
        timestamp=int(op.get('blockTime') or 0),
        method_id=method_id,
        is_error=not op.get('success', True)
    )


class UserOpClient:
    def __init__(self, graph_urls: List[str], timeout_s: int = 10, preference_reset_minutes: int = 60):
        self.pool = HttpEndpointPool(graph_urls, timeout_s=timeout_s, preference_reset_minutes=preference_reset_minutes)

    def _query(self, address: str, chain_id: int, skip: int) -> List[Dict[str, Any]]:
        payload = {
            'query': ADDRESS_ACTIVITY_QUERY,
            'variables': {'address': address.lower(), 'first': USEROPS_PAGE_SIZE, 'skip': skip},
        }
        try:
            data = self.pool.post_json(payload=payload, headers={'Content-Type': 'application/json'})
        except ConnectionError as e:
            raise ChainQueryError(f"Subgraph request failed: {e}", address=address, chain_id=chain_id)

        if not isinstance(data, dict):
            raise ChainQueryError("Subgraph returned a non-object response", address=address, chain_id=chain_id)
        if data.get('errors'):
            raise ChainQueryError(f"Subgraph errors: {data['errors']}", address=address, chain_id=chain_id)

        user_ops = (data.get('data') or {}).get('userOps')
        if not isinstance(user_ops, list):
            raise ChainQueryError("Subgraph response has no userOps list", address=address, chain_id=chain_id)
        return user_ops

    def get_transactions(self, address: str, chain_id: int) -> List[Transaction]:
        """Return every user operation sent by or targeting address, oldest first"""
        transactions: List[Transaction] = []
        skip = 0

        while True:
            user_ops = self._query(address, chain_id, skip)
            try:
                transactions.extend(user_op_to_transaction(op) for op in user_ops)
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                raise ChainQueryError(f"Malformed user operation from subgraph: {e}", address=address, chain_id=chain_id)

            if len(user_ops) < USEROPS_PAGE_SIZE:
                break
            skip += USEROPS_PAGE_SIZE

        logger.debug(f"Fetched {len(transactions)} user operations for {address} on chain {chain_id}")
        return transactions
