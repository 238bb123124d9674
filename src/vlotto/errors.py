from __future__ import annotations

from typing import Optional, Sequence


class VlottoError(RuntimeError):
    pass


class RpcError(VlottoError):
    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class RpcTransportError(RpcError):
    pass


class DaemonOffline(RpcTransportError):
    pass


class RpcAuthError(RpcError):
    pass


class InvalidResponse(RpcError):
    pass


class IdentityNotFound(RpcError):
    pass


class CurrencyNotFound(RpcError):
    pass


class ChainSyncing(RpcError):
    pass


class WalletLocked(RpcError):
    pass


class LedgerUnavailable(VlottoError):
    pass


class LedgerNotLoaded(VlottoError):
    pass


class TicketNotResolved(VlottoError):
    """Every candidate name for a ticket index failed."""

    def __init__(self, index: Optional[int], attempts: Sequence[str], reason: str) -> None:
        names = ", ".join(attempts) or "(none)"
        super().__init__(f"Ticket {index} not resolved after {len(attempts)} attempt(s) [{names}]: {reason}")
        self.index = index
        self.attempts = list(attempts)
        self.reason = reason


def error_from_daemon(code: int, message: str) -> RpcError:
    """Map a daemon error object onto the exception taxonomy."""
    lowered = message.lower()
    if code == -1:
        return DaemonOffline(message or "Daemon offline or unreachable", code)
    if code == -3:
        return RpcAuthError("Invalid RPC credentials", code)
    if code in (-4, -13, -14):
        return WalletLocked(message or "Wallet locked", code)
    if code == -17:
        return ChainSyncing(message or "Chain sync in progress", code)
    if code == -18:
        return IdentityNotFound(message, code)
    if code == -19:
        return CurrencyNotFound(message, code)
    # getidentity reports unknown names as invalid parameters
    if code in (-5, -8) and "not found" in lowered:
        if "currency" in lowered:
            return CurrencyNotFound(message, code)
        return IdentityNotFound(message, code)
    return RpcError(f"Code {code}: {message}", code)
