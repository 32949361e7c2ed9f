"""Tests for service name patterns and candidate generation."""

from __future__ import annotations

import random

import pytest

from onionctl.domain import ids
from onionctl.domain.ids import (
    MANAGED_NAME_PATTERN,
    SERVICE_PREFIX,
    SUFFIX_LENGTH,
    entropy_source,
    generate_candidate,
    is_tool_managed,
)


class TestIsToolManaged:
    @pytest.mark.parametrize("name", ["hidden_service_abc123xyz", "hidden_service_000000000"])
    def test_generated_names_are_managed(self, name: str) -> None:
        assert is_tool_managed(name)

    @pytest.mark.parametrize(
        "name",
        [
            "svc_demo",
            "hidden_service_ABC123XYZ",
            "hidden_service_abc123xy",
            "hidden_service_abc123xyz0",
            "my_hidden_service_abc123xyz",
            "",
        ],
    )
    def test_other_names_are_not(self, name: str) -> None:
        assert not is_tool_managed(name)


class TestGenerateCandidate:
    def test_shape(self) -> None:
        name = generate_candidate(random.Random(1))
        assert name.startswith(SERVICE_PREFIX)
        assert len(name) == len(SERVICE_PREFIX) + SUFFIX_LENGTH
        assert MANAGED_NAME_PATTERN.match(name)

    def test_seeded_rng_is_deterministic(self) -> None:
        assert generate_candidate(random.Random(7)) == generate_candidate(random.Random(7))

    def test_default_rng(self) -> None:
        assert is_tool_managed(generate_candidate())


class TestEntropySource:
    def test_prefers_system_random(self) -> None:
        assert isinstance(entropy_source(), random.SystemRandom)

    def test_falls_back_without_urandom(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def no_entropy(_n: int) -> bytes:
            raise NotImplementedError

        monkeypatch.setattr(ids.os, "urandom", no_entropy)
        rng = entropy_source()
        assert not isinstance(rng, random.SystemRandom)
        assert is_tool_managed(generate_candidate(rng))
