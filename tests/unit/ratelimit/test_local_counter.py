"""Tests for in-process window counters and static policies."""

from __future__ import annotations

import dataclasses

import pytest

from storefront.ratelimit import (
    AUTH_POLICY,
    POLICIES,
    LocalWindowCounter,
    RateLimitPolicy,
    get_policy,
)


class TestLocalWindowCounter:
    """Fallback counting."""

    def test_counts_within_window(self, clock) -> None:
        counter = LocalWindowCounter(clock=clock)

        assert counter.increment("rl:auth:ip", 900) == (1, 900)
        clock.advance(300)
        assert counter.increment("rl:auth:ip", 900) == (2, 600)

    def test_window_expires(self, clock) -> None:
        counter = LocalWindowCounter(clock=clock)
        counter.increment("rl:auth:ip", 60)
        clock.advance(60)

        assert counter.peek("rl:auth:ip") is None
        assert counter.increment("rl:auth:ip", 60) == (1, 60)

    def test_peek_does_not_count(self, clock) -> None:
        counter = LocalWindowCounter(clock=clock)
        counter.increment("k", 60)

        assert counter.peek("k") == (1, 60)
        assert counter.peek("k") == (1, 60)
        assert counter.peek("missing") is None

    def test_clear_by_prefix(self, clock) -> None:
        counter = LocalWindowCounter(clock=clock)
        counter.increment("rl:auth:a", 60)
        counter.increment("rl:auth:b", 60)
        counter.increment("rl:api:a", 60)

        assert counter.clear("rl:auth:") == 2
        assert len(counter) == 1

    def test_expired_windows_are_swept_at_capacity(self, clock) -> None:
        counter = LocalWindowCounter(clock=clock, max_keys=2)
        counter.increment("a", 10)
        counter.increment("b", 10)
        clock.advance(11)

        counter.increment("c", 10)

        assert len(counter) == 1


class TestPolicies:
    """The four static policies."""

    @pytest.mark.parametrize(
        ("name", "window", "maximum"),
        [
            ("api", 900, 100),
            ("auth", 900, 5),
            ("search", 60, 30),
            ("order", 3600, 10),
        ],
    )
    def test_policy_limits(self, name: str, window: int, maximum: int) -> None:
        policy = POLICIES[name]
        assert policy.window_seconds == window
        assert policy.max_requests == maximum
        assert policy.key_prefix == name

    def test_policies_are_immutable(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            AUTH_POLICY.max_requests = 50  # type: ignore[misc]
        with pytest.raises(TypeError):
            POLICIES["custom"] = AUTH_POLICY  # type: ignore[index]

    def test_get_policy_accepts_instances_and_names(self) -> None:
        assert get_policy("auth") is AUTH_POLICY
        assert get_policy(AUTH_POLICY) is AUTH_POLICY

        custom = RateLimitPolicy("custom", 10, 1, "custom", "slow down")
        assert get_policy(custom) is custom
