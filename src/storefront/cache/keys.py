"""Cache key schema for the storefront.

Key format: {namespace}:{identifier}

Namespaces:
- product:      single product lookups by id
- cart:         formatted cart by user id
- search:       search result pages by serialized query
- suggestions:  name suggestions by normalized prefix
- webhook:      processed payment event ids
- rl:           rate-limit counters, rl:{policy_prefix}:{client_ip}

The namespace of a key fully determines its TTL class and the writes
that invalidate it.
"""

from __future__ import annotations

from typing import Literal

Namespace = Literal["product", "cart", "search", "suggestions", "webhook", "rl"]

_GLOB_SPECIALS = "\\*?[]"


class CacheTTL:
    """TTL classes in seconds, one per namespace."""

    PRODUCT = 30 * 60
    SEARCH = 5 * 60
    SUGGESTIONS = 5 * 60
    CART = 2 * 24 * 60 * 60
    WEBHOOK = 24 * 60 * 60

    @classmethod
    def for_namespace(cls, namespace: str) -> int | None:
        """TTL for a namespace. Rate-limit keys use their policy window, so None."""
        return {
            "product": cls.PRODUCT,
            "search": cls.SEARCH,
            "suggestions": cls.SUGGESTIONS,
            "cart": cls.CART,
            "webhook": cls.WEBHOOK,
        }.get(namespace)


class CacheKeys:
    """Cache key generator following the namespace convention."""

    PRODUCT = "product"
    CART = "cart"
    SEARCH = "search"
    SUGGESTIONS = "suggestions"
    WEBHOOK = "webhook"
    RATE_LIMIT = "rl"

    @classmethod
    def product(cls, product_id: str) -> str:
        """Key for a cached product snapshot."""
        return f"{cls.PRODUCT}:{product_id}"

    @classmethod
    def cart(cls, user_id: str) -> str:
        """Key for a user's formatted cart."""
        return f"{cls.CART}:{user_id}"

    @classmethod
    def search(cls, serialized_query: str) -> str:
        """Key for a search result page."""
        return f"{cls.SEARCH}:{serialized_query}"

    @classmethod
    def suggestions(cls, prefix: str) -> str:
        """Key for name suggestions."""
        return f"{cls.SUGGESTIONS}:{prefix}"

    @classmethod
    def webhook(cls, event_id: str) -> str:
        """Key marking a payment event as processed."""
        return f"{cls.WEBHOOK}:{event_id}"

    @classmethod
    def rate_limit(cls, policy_prefix: str, client_ip: str) -> str:
        """Key for a fixed-window rate-limit counter."""
        return f"{cls.RATE_LIMIT}:{policy_prefix}:{client_ip}"

    @classmethod
    def namespace_prefix(cls, namespace: Namespace) -> str:
        """Prefix shared by every key of a namespace."""
        return f"{namespace}:"

    @classmethod
    def namespace_of(cls, key: str) -> str | None:
        """Return the namespace of a key, or None for foreign keys."""
        namespace, sep, rest = key.partition(":")
        if not sep or not rest:
            return None
        if namespace not in (
            cls.PRODUCT,
            cls.CART,
            cls.SEARCH,
            cls.SUGGESTIONS,
            cls.WEBHOOK,
            cls.RATE_LIMIT,
        ):
            return None
        return namespace

    @classmethod
    def match_pattern(cls, prefix: str) -> str:
        """SCAN MATCH pattern for every key starting with ``prefix``.

        Glob metacharacters in the prefix are escaped so that a search
        prefix containing e.g. ``[`` only matches literally.
        """
        escaped = "".join(f"\\{ch}" if ch in _GLOB_SPECIALS else ch for ch in prefix)
        return f"{escaped}*"
