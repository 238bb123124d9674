"""
Content-map message extraction.

Identity content is stored as

    identity.contentmultimap = {
        <vdxf key>: [                      # revisions, most recent first
            {<descriptor key>: {"objectdata": {"message": "<json>"}}},
            ...
        ],
    }

The same nesting is used for the ledger and for every ticket, only the
content key differs, so nothing here knows about either payload.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


def _first_value(mapping: Any) -> Any:
    if not isinstance(mapping, Mapping) or not mapping:
        return None
    return next(iter(mapping.values()))


def extract_content_message(identity: Any) -> Optional[str]:
    """Return the most recent message string, or None at any missing link."""
    if not isinstance(identity, Mapping):
        return None
    inner = identity.get("identity")
    if not isinstance(inner, Mapping):
        return None

    # First key in the daemon's order, not sorted.
    revisions = _first_value(inner.get("contentmultimap"))
    if not isinstance(revisions, list) or not revisions:
        return None

    payload = _first_value(revisions[0])
    if not isinstance(payload, Mapping):
        return None
    objectdata = payload.get("objectdata")
    if not isinstance(objectdata, Mapping):
        return None

    message = objectdata.get("message")
    if not isinstance(message, str):
        return None
    return message


def primary_address(identity: Any) -> Optional[str]:
    """First primary address of a getidentity response."""
    if not isinstance(identity, Mapping):
        return None
    inner = identity.get("identity")
    if not isinstance(inner, Mapping):
        return None
    addresses = inner.get("primaryaddresses")
    if not isinstance(addresses, list) or not addresses:
        return None
    first = addresses[0]
    return first if isinstance(first, str) and first else None


def parent_address(identity: Any) -> Optional[str]:
    if not isinstance(identity, Mapping):
        return None
    inner = identity.get("identity")
    if not isinstance(inner, Mapping):
        return None
    parent = inner.get("parent")
    return parent if isinstance(parent, str) and parent else None
