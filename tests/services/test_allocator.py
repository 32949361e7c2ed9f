"""Tests for local port allocation."""

from __future__ import annotations

import pytest

from onionctl.domain.errors import ResourceExhaustedError
from onionctl.services.allocator import MAX_PORT, allocate_port


def _listening(*ports: int):
    return lambda port: port in ports


class TestAllocatePort:
    def test_skips_ports_bound_on_host(self) -> None:
        assert allocate_port(5000, set(), _listening(5000, 5001, 5002)) == 5003

    def test_skips_registered_ports(self) -> None:
        assert allocate_port(5000, {5000, 5002}, _listening(5001)) == 5003

    def test_base_port_itself(self) -> None:
        assert allocate_port(8080, [], _listening()) == 8080

    @pytest.mark.parametrize("base", [0, -1, MAX_PORT + 1])
    def test_base_out_of_range(self, base: int) -> None:
        with pytest.raises(ValueError, match="Base port"):
            allocate_port(base, [], _listening())

    def test_exhausted(self) -> None:
        with pytest.raises(ResourceExhaustedError) as excinfo:
            allocate_port(MAX_PORT - 1, {MAX_PORT}, _listening(MAX_PORT - 1))
        assert excinfo.value.code == "RESOURCE_EXHAUSTED"
        assert excinfo.value.detail == {"base_port": MAX_PORT - 1}
