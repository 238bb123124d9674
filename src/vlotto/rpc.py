from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .config import Settings, normalize_chain
from .errors import InvalidResponse, RpcError, RpcTransportError, DaemonOffline, error_from_daemon

log = logging.getLogger(__name__)


def _error_code(code: Any) -> int:
    # Some daemons send null or string codes.
    if isinstance(code, bool):
        return 0
    try:
        return int(code)
    except (TypeError, ValueError, OverflowError):
        return 0


class RpcClient:
    """Async JSON-RPC client for a Verus daemon.

    The chain selector picks a per-chain endpoint when one is configured;
    otherwise every call goes to ``rpc_url`` and the daemon behind it
    decides the chain.
    """

    def __init__(
        self,
        rpc_url: str,
        username: str = "",
        password: str = "",
        timeout_s: float = 60.0,
        chain_urls: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.chain_urls = {k.lower(): v for k, v in (chain_urls or {}).items()}
        auth = (username, password) if username or password else None
        self.client = httpx.AsyncClient(timeout=timeout_s, auth=auth, transport=transport)
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Settings, timeout_s: float = 60.0) -> "RpcClient":
        return cls(
            settings.rpc_url,
            username=settings.rpc_user,
            password=settings.rpc_password,
            timeout_s=timeout_s,
            chain_urls=settings.chain_urls,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def url_for(self, chain: Optional[str]) -> str:
        chain = normalize_chain(chain)
        if chain and chain in self.chain_urls:
            return self.chain_urls[chain]
        return self.rpc_url

    async def call(self, method: str, params: List[Any], chain: Optional[str] = None) -> Any:
        payload = {
            "jsonrpc": "1.0",
            "id": f"vlotto_{next(self._ids)}",
            "method": method,
            "params": params,
        }
        data = await self._post(payload, self.url_for(chain))
        return data.get("result")

    async def _post(self, payload: Dict[str, Any], url: str) -> Dict[str, Any]:
        method = payload["method"]
        log.debug("RPC %s %s", method, payload["params"])
        try:
            resp = await self.client.post(url, json=payload)
        except httpx.ConnectError as e:
            raise DaemonOffline(f"{method}: daemon unreachable ({e})")
        except httpx.HTTPError as e:
            raise RpcTransportError(f"{method}: {e}")

        # The daemon reports RPC errors with HTTP 500 and a JSON body.
        try:
            data = resp.json()
        except (ValueError, RecursionError):
            data = None

        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            if isinstance(err, dict):
                raise error_from_daemon(_error_code(err.get("code")), str(err.get("message", "")))
            raise RpcError(f"RPC error: {err}")

        if resp.status_code == 401:
            raise error_from_daemon(-3, "HTTP 401")
        if resp.is_error:
            raise RpcTransportError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        if not isinstance(data, dict):
            raise InvalidResponse(f"{method}: response is not a JSON-RPC object")
        return data

    async def get_identity(self, name: str, chain: Optional[str] = None) -> Dict[str, Any]:
        result = await self.call("getidentity", [name], chain)
        if not isinstance(result, dict):
            raise InvalidResponse(f"getidentity {name}: unexpected result")
        return result

    async def get_identity_content(
        self,
        name: str,
        height_start: Optional[int] = None,
        height_end: Optional[int] = None,
        tx_proofs: bool = False,
        vdxf_key: Optional[str] = None,
        chain: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Returns the identity with its full content-map history.

        Positional daemon params: name, heightstart, heightend, txproofs,
        txproofheight, vdxfkey. Unset heights mean the full range.
        """
        params: List[Any] = [name]
        if vdxf_key is not None or height_start is not None or height_end is not None:
            params += [height_start or 0, height_end or 0, tx_proofs, 0]
            if vdxf_key is not None:
                params.append(vdxf_key)
        result = await self.call("getidentitycontent", params, chain)
        if not isinstance(result, dict):
            raise InvalidResponse(f"getidentitycontent {name}: unexpected result")
        return result

    async def get_block_count(self, chain: Optional[str] = None) -> int:
        result = await self.call("getblockcount", [], chain)
        if isinstance(result, bool) or not isinstance(result, int):
            raise InvalidResponse(f"getblockcount: unexpected result {result!r}")
        return result

    async def get_currency(
        self, currency_name: str, height: Optional[int] = None, chain: Optional[str] = None
    ) -> Dict[str, Any]:
        params: List[Any] = [currency_name]
        if height is not None:
            params.append(height)
        result = await self.call("getcurrency", params, chain)
        if not isinstance(result, dict):
            raise InvalidResponse(f"getcurrency {currency_name}: unexpected result")
        return result

    async def verify_message(
        self,
        identity_or_address: str,
        signature: str,
        message: str,
        check_latest: bool = False,
        chain: Optional[str] = None,
    ) -> bool:
        result = await self.call(
            "verifymessage", [identity_or_address, signature, message, check_latest], chain
        )
        if not isinstance(result, bool):
            raise InvalidResponse(f"verifymessage: expected boolean, got {result!r}")
        return result

    async def verify_hash(
        self,
        identity_or_address: str,
        signature: str,
        hex_hash: str,
        check_latest: bool = False,
        chain: Optional[str] = None,
    ) -> bool:
        result = await self.call(
            "verifyhash", [identity_or_address, signature, hex_hash, check_latest], chain
        )
        if not isinstance(result, bool):
            raise InvalidResponse(f"verifyhash: expected boolean, got {result!r}")
        return result
