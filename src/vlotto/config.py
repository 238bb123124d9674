from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from .project_constants import (
    DEFAULT_RPC_HOST,
    DEFAULT_RPC_PORT,
    LEDGER_IDENTITY,
    MAINNET_CHAIN,
    POLL_INTERVAL_S,
)

CHAIN_URL_PREFIX = "VERUS_RPC_URL_"


def normalize_chain(chain: Optional[str]) -> Optional[str]:
    """Lower-case a chain selector; mainnet needs no selector."""
    if not chain:
        return None
    chain = chain.strip().lower()
    if not chain or chain == MAINNET_CHAIN:
        return None
    return chain


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    rpc_user: str = ""
    rpc_password: str = ""
    chain: Optional[str] = None
    ledger_identity: str = LEDGER_IDENTITY
    poll_interval_s: float = POLL_INTERVAL_S
    chain_urls: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        chain_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        user = os.getenv("VERUS_RPC_USER", "").strip()
        password = os.getenv("VERUS_RPC_PASSWORD", "").strip()
        chain = normalize_chain(chain_override or os.getenv("VLOTTO_CHAIN"))
        ledger_identity = os.getenv("VLOTTO_LEDGER_IDENTITY", "").strip() or LEDGER_IDENTITY

        interval_raw = os.getenv("VLOTTO_POLL_INTERVAL", "").strip()
        try:
            poll_interval_s = float(interval_raw) if interval_raw else POLL_INTERVAL_S
        except ValueError:
            raise RuntimeError(f"VLOTTO_POLL_INTERVAL must be a number, got {interval_raw!r}")
        if poll_interval_s <= 0:
            raise RuntimeError("VLOTTO_POLL_INTERVAL must be positive")

        chain_urls: Dict[str, str] = {}
        for key, value in os.environ.items():
            if key.startswith(CHAIN_URL_PREFIX) and value.strip():
                chain_urls[key[len(CHAIN_URL_PREFIX):].lower()] = value.strip()

        # If user provides --rpc-url, trust it.
        if rpc_url_override:
            rpc_url = rpc_url_override
        else:
            rpc_url = os.getenv("VERUS_RPC_URL", "").strip()

        # Otherwise build the daemon url from host/port; a local daemon
        # always needs credentials.
        if not rpc_url:
            if not user or not password:
                raise RuntimeError(
                    "Missing VERUS_RPC_URL (or VERUS_RPC_USER/VERUS_RPC_PASSWORD). "
                    "Put them in .env or export them."
                )
            host = os.getenv("VERUS_RPC_HOST", "").strip() or DEFAULT_RPC_HOST
            port = os.getenv("VERUS_RPC_PORT", "").strip() or str(DEFAULT_RPC_PORT)
            rpc_url = f"http://{host}:{port}"

        return Settings(
            rpc_url=rpc_url,
            rpc_user=user,
            rpc_password=password,
            chain=chain,
            ledger_identity=ledger_identity,
            poll_interval_s=poll_interval_s,
            chain_urls=chain_urls,
        )
