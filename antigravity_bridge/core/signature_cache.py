"""Thought signature cache.

The backend issues opaque ``thoughtSignature`` tokens alongside generated
content and expects them echoed back verbatim when a later request refers to
the same function call or assistant text. This module remembers them by
call id and by message text.

Thread-safe via a single lock per cache; both maps are LRU-bounded.
"""

import logging
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import get_config
from ..constants import DEFAULT_SIGNATURE_CACHE_SIZE

logger = logging.getLogger(__name__)

_THINK_BLOCK_RE = re.compile(r"<think>[\s\S]*?</think>")
_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*]\([^)]+\)")


@dataclass(frozen=True)
class SignatureEntry:
    """A cached signature plus the exact text it was issued for."""

    signature: str
    text: str


def normalize_text_for_signature(text: Any) -> str:
    """Normalize assistant text into a cache lookup key.

    Strips ``<think>`` blocks and markdown images, converts CRLF to LF and
    trims. The result is only used as a key, never sent to the backend.
    """
    if not isinstance(text, str):
        return ""
    text = _THINK_BLOCK_RE.sub("", text)
    text = _MARKDOWN_IMAGE_RE.sub("", text)
    return text.replace("\r\n", "\n").strip()


class SignatureCache:
    """Bounded mapping of call ids and texts to thought signatures."""

    def __init__(self, max_entries: int = DEFAULT_SIGNATURE_CACHE_SIZE):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._by_call_id: "OrderedDict[str, str]" = OrderedDict()
        self._by_text: "OrderedDict[str, SignatureEntry]" = OrderedDict()

    def put(self, call_id: Optional[str], signature: Optional[str]) -> None:
        """Remember the signature issued for a function call."""
        if not isinstance(call_id, str) or not call_id or not signature:
            return
        with self._lock:
            self._by_call_id[call_id] = signature
            self._by_call_id.move_to_end(call_id)
            self._evict_unlocked(self._by_call_id)

    def get(self, call_id: Optional[str]) -> Optional[str]:
        if not isinstance(call_id, str) or not call_id:
            return None
        with self._lock:
            signature = self._by_call_id.get(call_id)
            if signature is not None:
                self._by_call_id.move_to_end(call_id)
            return signature

    def put_for_text(self, text: Any, signature: Optional[str]) -> None:
        """Remember the signature issued for a piece of assistant text.

        The entry is stored under the raw, trimmed and normalized forms of
        the text so that re-sent text still matches after whitespace or
        markdown changes.
        """
        if not text or not signature:
            return
        original = text if isinstance(text, str) else str(text)
        trimmed = original.strip()
        normalized = normalize_text_for_signature(trimmed)
        entry = SignatureEntry(signature=signature, text=original)

        keys: List[str] = []
        for key in (original, trimmed, normalized):
            if key and key not in keys:
                keys.append(key)

        with self._lock:
            for key in keys:
                self._by_text[key] = entry
                self._by_text.move_to_end(key)
            self._evict_unlocked(self._by_text)

    def get_for_text(self, text: Any) -> Optional[SignatureEntry]:
        """Look up a text signature by raw, then trimmed, then normalized text."""
        if not isinstance(text, str) or not text.strip():
            return None
        trimmed = text.strip()
        with self._lock:
            for key in (text, trimmed, normalize_text_for_signature(trimmed)):
                if not key:
                    continue
                entry = self._by_text.get(key)
                if entry is not None:
                    self._by_text.move_to_end(key)
                    return entry
        return None

    def clear(self) -> None:
        with self._lock:
            self._by_call_id.clear()
            self._by_text.clear()

    def stats(self) -> Dict[str, int]:
        """Return entry counts for diagnostics."""
        with self._lock:
            return {
                "call_ids": len(self._by_call_id),
                "texts": len(self._by_text),
                "max_entries": self.max_entries,
            }

    def _evict_unlocked(self, store: "OrderedDict[str, Any]") -> None:
        """Drop least recently used keys beyond the bound. Caller holds the lock."""
        evicted = 0
        while len(store) > self.max_entries:
            store.popitem(last=False)
            evicted += 1
        if evicted:
            logger.debug(f"Evicted {evicted} thought signature cache entries")


# =============================================================================
# PROCESS-WIDE DEFAULT CACHE
# =============================================================================

_default_cache: Optional[SignatureCache] = None
_default_cache_lock = threading.Lock()


def get_signature_cache() -> SignatureCache:
    """Get the shared cache, creating it from configuration on first use."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = SignatureCache(max_entries=get_config().cache.max_entries)
        return _default_cache


def clear_signature_cache() -> None:
    """Drop the shared cache; the next call to get_signature_cache recreates it."""
    global _default_cache
    with _default_cache_lock:
        _default_cache = None


# =============================================================================
# RESPONSE SIGNATURE RECORDING
# =============================================================================


def extract_part_signature(part: Dict[str, Any]) -> Optional[str]:
    """Extract thoughtSignature from a backend part (direct or metadata.google)."""
    sig = part.get("thoughtSignature")
    if isinstance(sig, str) and sig:
        return sig

    func_call = part.get("functionCall")
    if isinstance(func_call, dict):
        sig = func_call.get("thoughtSignature") or func_call.get("thought_signature")
        if isinstance(sig, str) and sig:
            return sig

    metadata = part.get("metadata")
    if isinstance(metadata, dict):
        google_meta = metadata.get("google")
        if isinstance(google_meta, dict):
            sig = google_meta.get("thoughtSignature")
            if isinstance(sig, str) and sig:
                return sig

    return None


def record_response_signatures(
    data: Dict[str, Any], cache: Optional[SignatureCache] = None
) -> int:
    """Cache the signatures found in a backend response.

    Function-call signatures are stored by call id. A text signature is
    stored against the visible (non-thought) text of its candidate, which is
    what the client will send back as assistant content.

    Args:
        data: Response body, optionally wrapped in ``{"response": ...}``
        cache: Target cache (defaults to the shared cache)

    Returns:
        Number of signatures recorded
    """
    if cache is None:
        cache = get_signature_cache()
    if not isinstance(data, dict):
        return 0
    if isinstance(data.get("response"), dict):
        data = data["response"]

    candidates = data.get("candidates")
    if not isinstance(candidates, list):
        return 0

    recorded = 0
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue

        text_chunks: List[str] = []
        text_signature: Optional[str] = None
        thought_signature: Optional[str] = None
        for part in parts:
            if not isinstance(part, dict):
                continue
            sig = extract_part_signature(part)

            func_call = part.get("functionCall")
            if isinstance(func_call, dict):
                if sig and func_call.get("id"):
                    cache.put(func_call["id"], sig)
                    recorded += 1
                continue

            if part.get("thought") is True:
                if sig:
                    thought_signature = sig
                continue

            text = part.get("text")
            if isinstance(text, str):
                text_chunks.append(text)
                if sig:
                    text_signature = sig

        full_text = "".join(text_chunks)
        text_signature = text_signature or thought_signature
        if text_signature and full_text.strip():
            cache.put_for_text(full_text, text_signature)
            recorded += 1

    return recorded
