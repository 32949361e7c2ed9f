"""Tests for unique service name generation."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from onionctl.domain.errors import ResourceExhaustedError
from onionctl.domain.ids import generate_candidate, is_tool_managed
from onionctl.services.naming import generate_unique_name


def _never(_path: Path) -> bool:
    return False


def _first_candidate(seed: int) -> str:
    return generate_candidate(random.Random(seed))


class TestGenerateUniqueName:
    def test_returns_managed_name(self) -> None:
        name = generate_unique_name(set(), "", _never, rng=random.Random(7))
        assert is_tool_managed(name)
        assert name == _first_candidate(7)

    def test_skips_registered_name(self) -> None:
        first = _first_candidate(7)
        name = generate_unique_name({first}, "", _never, rng=random.Random(7))
        assert name != first

    def test_skips_name_found_in_torrc(self) -> None:
        first = _first_candidate(7)
        text = f"# Hidden Service Configuration - {first}\n"
        assert generate_unique_name(set(), text, _never, rng=random.Random(7)) != first

    def test_skips_existing_directory(self, tmp_path: Path) -> None:
        first = _first_candidate(7)
        (tmp_path / first).mkdir()
        name = generate_unique_name(
            set(), "", Path.exists, directories=[tmp_path], rng=random.Random(7)
        )
        assert name != first

    def test_gives_up(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceExhaustedError) as excinfo:
            generate_unique_name(
                set(), "", lambda _p: True, directories=[tmp_path], max_attempts=3
            )
        assert excinfo.value.detail == {"attempts": 3}
