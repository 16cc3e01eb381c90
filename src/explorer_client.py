#!/usr/bin/env python3
"""
Explorer Client

Fetches full transaction history for an address from an Etherscan-v2 style
block explorer API (module=account, action=txlist). Rotates API keys and fails
over between base URLs.

The API caps page x offset at 10000 rows, so history is walked by block range:
each full page restarts at the block of its last row and rows are deduplicated
by hash.

Retry on explorer rate limiting lives here, not in the attestation core.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

from rpc_failover import HttpEndpointPool
from errors import ChainQueryError

logger = logging.getLogger(__name__)

PAGE_SIZE = 10000
NO_TRANSACTIONS_MESSAGES = ("No transactions found", "No records found")
RESULT_WINDOW_MARKER = "result window is too large"


@dataclass(frozen=True)
class Transaction:
    hash: str
    from_address: str
    to_address: str
    block_number: int
    timestamp: int
    method_id: str = "0x"
    is_error: bool = False

    @classmethod
    def from_explorer_row(cls, row: Dict[str, Any]) -> "Transaction":
        """Normalise one txlist row; raises ValueError/KeyError on malformed rows"""
        method_id = row.get('methodId') or ''
        if not method_id:
            tx_input = row.get('input') or ''
            method_id = tx_input[:10] if tx_input.startswith('0x') and len(tx_input) >= 10 else '0x'
        return cls(
            hash=row['hash'],
            from_address=(row.get('from') or '').lower(),
            to_address=(row.get('to') or '').lower(),
            block_number=int(row['blockNumber']),
            timestamp=int(row.get('timeStamp') or 0),
            method_id=method_id.lower(),
            is_error=str(row.get('isError', '0')) == '1'
        )


def _is_rate_limited(result: Any) -> bool:
    return isinstance(result, str) and 'rate limit' in result.lower()


def _is_result_window_exceeded(result: Any) -> bool:
    return isinstance(result, str) and RESULT_WINDOW_MARKER in result.lower()


class ExplorerClient:
    def __init__(self, base_urls: List[str], api_keys: Optional[List[str]] = None, timeout_s: int = 10,
                 max_retries: int = 3, retry_delay: float = 0.2, preference_reset_minutes: int = 60):
        self.pool = HttpEndpointPool(base_urls, timeout_s=timeout_s, preference_reset_minutes=preference_reset_minutes)
        self.api_keys = [k for k in (api_keys or []) if k]
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._key_index = 0
        self._key_lock = threading.Lock()

    def _next_api_key(self) -> Optional[str]:
        if not self.api_keys:
            return None
        with self._key_lock:
            key = self.api_keys[self._key_index % len(self.api_keys)]
            self._key_index += 1
        return key

    def _fetch_page(self, address: str, chain_id: int, start_block: int) -> List[Dict[str, Any]]:
        attempt = 0
        while True:
            params = {
                'chainid': chain_id,
                'module': 'account',
                'action': 'txlist',
                'address': address,
                'startblock': start_block,
                'endblock': 'latest',
                'page': 1,
                'offset': PAGE_SIZE,
                'sort': 'asc',
            }
            api_key = self._next_api_key()
            if api_key:
                params['apikey'] = api_key

            try:
                data = self.pool.get_json(params=params)
            except ConnectionError as e:
                raise ChainQueryError(f"Explorer request failed: {e}", address=address, chain_id=chain_id)

            if not isinstance(data, dict):
                raise ChainQueryError("Explorer returned a non-object response", address=address, chain_id=chain_id)

            status = str(data.get('status', ''))
            message = str(data.get('message', ''))
            result = data.get('result')

            if status == '1' and isinstance(result, list):
                return result

            if status == '0' and (message in NO_TRANSACTIONS_MESSAGES or result == []):
                return []

            if _is_result_window_exceeded(result) or _is_result_window_exceeded(message):
                # end of what the API will serve; keep the rows already collected
                logger.warning(f"Explorer result window exceeded for {address} on chain {chain_id} at block {start_block}")
                return []

            if _is_rate_limited(result) or _is_rate_limited(message):
                if attempt < self.max_retries:
                    attempt += 1
                    logger.warning(f"Explorer rate limit reached, retrying in {self.retry_delay}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(self.retry_delay)
                    continue
                raise ChainQueryError("Explorer rate limit retries exhausted", address=address, chain_id=chain_id)

            detail = result if isinstance(result, str) else message or 'unexpected response'
            raise ChainQueryError(f"Explorer error: {detail}", address=address, chain_id=chain_id)

    def get_transactions(self, address: str, chain_id: int) -> List[Transaction]:
        """Return every transaction touching address on chain_id, oldest first"""
        transactions: List[Transaction] = []
        seen_hashes = set()
        start_block = 0

        while True:
            rows = self._fetch_page(address, chain_id, start_block)
            logger.debug(f"Fetched {len(rows)} transactions from block {start_block} for {address} on chain {chain_id}")

            try:
                page = [Transaction.from_explorer_row(row) for row in rows]
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                raise ChainQueryError(f"Malformed transaction row from explorer: {e}", address=address, chain_id=chain_id)

            new_rows = 0
            for tx in page:
                if tx.hash in seen_hashes:
                    continue
                seen_hashes.add(tx.hash)
                transactions.append(tx)
                new_rows += 1

            if len(rows) < PAGE_SIZE:
                break

            next_block = page[-1].block_number
            if new_rows == 0 or next_block <= start_block:
                # a single block holds a full page; nothing further is reachable by block range
                logger.warning(f"Stopping history walk for {address} on chain {chain_id} at block {start_block}")
                break
            start_block = next_block

        return transactions
