"""Helpers that keep credential material out of messages and logs.

Secret values are registered when the credential adapter fetches them; any
text passed through ``redact`` has registered values (and anything that looks
like an ``Authorization`` header value) replaced by a placeholder.
"""

import re
import threading
from typing import Optional, Set

REDACTED = "***REDACTED***"

# Values shorter than this are too likely to collide with ordinary text.
MIN_REGISTERED_LENGTH = 6

_AUTH_PATTERN = re.compile(r"(?i)(bearer\s+|api[-_]?key[=:]\s*)[^\s,;'\"]+")

_registered: Set[str] = set()
_lock = threading.Lock()


def register_secret(value: Optional[str]) -> None:
    """Marks a value as secret so ``redact`` scrubs it from any text."""
    if value and len(value) >= MIN_REGISTERED_LENGTH:
        with _lock:
            _registered.add(value)


def unregister_secret(value: Optional[str]) -> None:
    if value:
        with _lock:
            _registered.discard(value)


def clear_registered_secrets() -> None:
    with _lock:
        _registered.clear()


def redact(text: object) -> str:
    """Returns ``text`` as a string with every known secret masked."""
    result = str(text)
    with _lock:
        secrets = sorted(_registered, key=len, reverse=True)
    for secret in secrets:
        if secret in result:
            result = result.replace(secret, REDACTED)
    return _AUTH_PATTERN.sub(lambda m: m.group(1) + REDACTED, result)

