"""
Chain module for the autostake package.

This module provides the RPC gateway used by every lifecycle step and a
registry that owns gateway construction and teardown for a run.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional

from .gateway import ChainGateway, DEFAULT_TIMEOUT, is_pending_receipt_error
from ..exceptions import GatewayConnectionError

__all__ = ['ChainGateway', 'GatewayRegistry', 'DEFAULT_TIMEOUT', 'is_pending_receipt_error']

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """
    Named collection of connected gateways.

    The process driver creates one registry, connects the endpoints it needs
    and closes the registry on shutdown. Lookups are thread-safe.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        factory: Optional[Callable[..., ChainGateway]] = None,
    ):
        self.timeout = timeout
        self._factory = factory or ChainGateway
        self._gateways: Dict[str, ChainGateway] = {}
        self._lock = threading.RLock()
        self._closed = False

    def connect(self, name: str, rpc_url: str) -> ChainGateway:
        """
        Get or create the gateway registered under ``name``.

        Raises:
            GatewayConnectionError: If the endpoint cannot be reached
            RuntimeError: If the registry has been closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Gateway registry is closed")
            existing = self._gateways.get(name)
        if existing is not None:
            return existing

        # Probe outside the lock so connect_all can dial endpoints in parallel
        gateway = self._factory(rpc_url, timeout=self.timeout)
        with self._lock:
            if self._closed or name in self._gateways:
                winner = self._gateways.get(name)
            else:
                self._gateways[name] = gateway
                logger.debug(f"Registered gateway {name!r}")
                return gateway
        gateway.close()
        if winner is None:
            raise RuntimeError("Gateway registry is closed")
        return winner

    def connect_all(self, endpoints: Dict[str, str]) -> Dict[str, ChainGateway]:
        """
        Connect several endpoints concurrently; all must succeed.

        Raises:
            GatewayConnectionError: If the mapping is empty or any endpoint fails
        """
        if not endpoints:
            raise GatewayConnectionError("RPC URLs map is empty")

        with ThreadPoolExecutor(max_workers=len(endpoints)) as pool:
            futures = {name: pool.submit(self.connect, name, url) for name, url in endpoints.items()}
        errors = []
        for name, future in futures.items():
            error = future.exception()
            if error is not None:
                errors.append(f"{name}: {error}")
        if errors:
            raise GatewayConnectionError("; ".join(errors))
        return {name: future.result() for name, future in futures.items()}

    def get(self, name: str) -> ChainGateway:
        with self._lock:
            try:
                return self._gateways[name]
            except KeyError:
                raise KeyError(f"No gateway registered under {name!r}. Available: {sorted(self._gateways)}")

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._gateways

    def close(self) -> None:
        """Close every gateway and refuse further connections."""
        with self._lock:
            gateways = list(self._gateways.values())
            self._gateways.clear()
            self._closed = True
        for gateway in gateways:
            gateway.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
