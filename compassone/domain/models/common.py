"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like operation names,
continuation tokens and request identifiers, ensuring consistency and
type safety.
"""

from typing import Any, Dict, NewType, Optional, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
OperationName = NewType("OperationName", str)        # e.g. 'list_assets'
RequestId = NewType("RequestId", str)                # Correlation id sent as X-Request-Id
ContinuationToken = NewType("ContinuationToken", str)  # Opaque pagination cursor
CredentialIdentity = NewType("CredentialIdentity", str)  # Name of a secret in the store

# === Caching Context ===
CacheKey = NewType("CacheKey", str)

# === Operation Parameters ===
Parameters = Dict[str, Any]


class CredentialStatus(TypedDict):
    """Redacted, loggable view of a cached credential."""
    identity: str
    cached: bool
    expires_at: Optional[float]
    age_seconds: Optional[float]
    rotation_due: bool
    present: bool
