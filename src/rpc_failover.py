#!/usr/bin/env python3
from typing import List, Callable, Any, Optional, Dict
import logging
import threading
import time
from web3 import Web3
import requests

logger = logging.getLogger(__name__)


class _StickyPreference:
    """Remembers the last working endpoint index and forgets it periodically"""

    def __init__(self, preference_reset_minutes: int):
        self.preference_reset_sec = max(1, int(preference_reset_minutes) * 60)
        self._last_reset_ts = 0.0
        self._sticky_index: Optional[int] = None
        # pools are shared by the aggregator's worker threads
        self._lock = threading.Lock()

    def _should_reset_preferences(self) -> bool:
        now = time.time()
        if self._last_reset_ts == 0.0:
            self._last_reset_ts = now
            return False
        return (now - self._last_reset_ts) >= self.preference_reset_sec

    def _maybe_reset(self):
        with self._lock:
            if self._should_reset_preferences():
                self._last_reset_ts = time.time()
                self._sticky_index = None

    def _candidate_order(self, count: int) -> List[int]:
        # sticky endpoint first, then the rest in configured preference order
        with self._lock:
            sticky = self._sticky_index
        order = list(range(count))
        if sticky is not None and sticky in order:
            order.remove(sticky)
            order.insert(0, sticky)
        return order

    def _mark_success(self, index: int):
        with self._lock:
            self._sticky_index = index

    def _mark_failure(self, index: int):
        with self._lock:
            if self._sticky_index == index:
                self._sticky_index = None


class EVMProviderPool(_StickyPreference):
    def __init__(self, urls: List[str], request_timeout_s: int = 15, preference_reset_minutes: int = 60):
        if not urls:
            raise ValueError("EVMProviderPool requires at least one URL")
        super().__init__(preference_reset_minutes)
        self.urls = urls
        self.request_timeout_s = request_timeout_s

    def _build_web3(self, index: int) -> Web3:
        return Web3(Web3.HTTPProvider(self.urls[index], request_kwargs={'timeout': self.request_timeout_s}))

    def call(self, fn: Callable[[Web3], Any], description: str = "call") -> Any:
        """Run fn against the preferred provider, failing over through the rest in order"""
        self._maybe_reset()

        last_error: Optional[Exception] = None
        for i in self._candidate_order(len(self.urls)):
            try:
                result = fn(self._build_web3(i))
                self._mark_success(i)
                return result
            except Exception as e:
                last_error = e
                logger.debug(f"EVM RPC endpoint #{i} failed for {description}: {e}")
                self._mark_failure(i)
                continue

        if last_error:
            raise ConnectionError(f"All EVM RPC endpoints failed for {description}: {last_error}")
        raise ConnectionError(f"All EVM RPC endpoints failed for {description}")

    def with_contract_call(self, address: str, abi: Any, fn_builder: Callable[[Any], Any],
                           description: str = "contract call") -> Any:
        """Build the contract on the preferred provider and run fn_builder(contract), with failover"""
        return self.call(lambda w3: fn_builder(w3.eth.contract(address=address, abi=abi)), description=description)


class HttpEndpointPool(_StickyPreference):
    def __init__(self, base_urls: List[str], timeout_s: int = 10, preference_reset_minutes: int = 60):
        if not base_urls:
            raise ValueError("HttpEndpointPool requires at least one base URL")
        super().__init__(preference_reset_minutes)
        self.base_urls = [u.rstrip('/') for u in base_urls]
        self.timeout_s = timeout_s

    def _full_url(self, index: int, path: str) -> str:
        path = path.lstrip('/')
        if not path:
            return self.base_urls[index]
        return f"{self.base_urls[index]}/{path}"

    def _request_json(self, method: str, send: Callable[[str], Any], path: str) -> Any:
        self._maybe_reset()

        last_error: Optional[Exception] = None
        for i in self._candidate_order(len(self.base_urls)):
            try:
                resp = send(self._full_url(i, path))
                resp.raise_for_status()
                data = resp.json()
                self._mark_success(i)
                return data
            except Exception as e:
                last_error = e
                logger.debug(f"HTTP endpoint #{i} failed for {method} {path or '/'}: {e}")
                self._mark_failure(i)
                continue

        if last_error:
            raise ConnectionError(f"All HTTP endpoints failed for {method} {path or '/'}: {last_error}")
        raise ConnectionError(f"All HTTP endpoints failed for {method} {path or '/'}")

    def get_json(self, path: str = "", params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._request_json(
            'GET',
            lambda url: requests.get(url, params=params, headers=headers, timeout=self.timeout_s),
            path
        )

    def post_json(self, path: str = "", payload: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self._request_json(
            'POST',
            lambda url: requests.post(url, json=payload, headers=headers, timeout=self.timeout_s),
            path
        )
