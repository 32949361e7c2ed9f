"""Segment-based reader/editor for Tor's ``torrc`` configuration text.

A managed block looks like::

    # Hidden Service Configuration - hidden_service_ab12cd34e
    HiddenServiceDir /var/lib/tor/hidden_service_ab12cd34e/
    HiddenServicePort 80 127.0.0.1:5001

There is no end marker. A block keeps consuming blank lines, at most one
``HiddenServiceDir`` and any number of ``HiddenServicePort`` lines; the
first line that is none of those ends the block and belongs to whatever
follows. Everything outside a block is an opaque ``other`` segment.

INVARIANT: ``"".join(s.text for s in parse(text)) == text`` for any input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Literal

MARKER_PREFIX = "# Hidden Service Configuration - "

MARKER_PATTERN: re.Pattern[str] = re.compile(
    r"^#\s*Hidden Service Configuration - (?P<name>\S+)\s*$"
)
_DIR_PATTERN = re.compile(r"^\s*HiddenServiceDir\s+(?P<dir>\S.*?)\s*$")
_PORT_PATTERN = re.compile(
    r"^\s*HiddenServicePort\s+(?P<virt>\d+)\s+(?:(?P<host>[^\s:]+):)?(?P<port>\d+)\s*$"
)


@dataclass
class Segment:
    """A contiguous run of lines, each keeping its own line ending."""

    kind: Literal["block", "other"]
    lines: list[str] = field(default_factory=list)
    name: str | None = None

    @property
    def text(self) -> str:
        return "".join(self.lines)


def _marker_name(line: str) -> str | None:
    match = MARKER_PATTERN.match(line.rstrip("\r\n"))
    return match.group("name") if match else None


def parse(text: str) -> list[Segment]:
    """Split *text* into block and other segments."""
    segments: list[Segment] = []
    lines = text.splitlines(keepends=True)
    i = 0
    while i < len(lines):
        name = _marker_name(lines[i])
        if name is None:
            if not segments or segments[-1].kind != "other":
                segments.append(Segment(kind="other"))
            segments[-1].lines.append(lines[i])
            i += 1
            continue

        block = Segment(kind="block", lines=[lines[i]], name=name)
        i += 1
        seen_dir = False
        while i < len(lines):
            body = lines[i].rstrip("\r\n")
            if not body.strip():
                block.lines.append(lines[i])
            elif _DIR_PATTERN.match(body) and not seen_dir:
                seen_dir = True
                block.lines.append(lines[i])
            elif _PORT_PATTERN.match(body):
                block.lines.append(lines[i])
            else:
                break
            i += 1
        segments.append(block)
    return segments


def block_names(text: str) -> list[str]:
    """Names of every managed block in *text*, in file order."""
    return [s.name for s in parse(text) if s.kind == "block" and s.name]


def has_block(text: str, name: str) -> bool:
    return name in block_names(text)


def get_block(text: str, name: str) -> Segment | None:
    for segment in parse(text):
        if segment.kind == "block" and segment.name == name:
            return segment
    return None


def block_lines(directory: str, virtual_port: int, host: str, port: int) -> list[str]:
    """The two directives of a managed block, without line endings."""
    dir_text = directory if directory.endswith("/") else f"{directory}/"
    return [
        f"HiddenServiceDir {dir_text}",
        f"HiddenServicePort {virtual_port} {host}:{port}",
    ]


def insert_block(text: str, name: str, body_lines: list[str]) -> str:
    """Append a managed block for *name* to the end of *text*."""
    prefix = text
    if prefix and not prefix.endswith("\n"):
        prefix += "\n"
    if prefix and not prefix.endswith("\n\n"):
        prefix += "\n"
    block = [f"{MARKER_PREFIX}{name}", *body_lines]
    return prefix + "\n".join(block) + "\n"


def remove_block(text: str, name: str) -> tuple[str, bool]:
    """Drop the first block whose marker names *name*.

    Returns the new text and whether a block was removed. All other
    lines are left byte-identical.
    """
    segments = parse(text)
    for index, segment in enumerate(segments):
        if segment.kind == "block" and segment.name == name:
            del segments[index]
            return "".join(s.text for s in segments), True
    return text, False


def _directive_span(text: str, directory: str) -> tuple[int, int] | None:
    """Line range of the unmarked directives serving *directory*.

    The range starts at the matching ``HiddenServiceDir`` and covers the
    ``HiddenServicePort`` lines directly after it. Directives inside a
    managed block are left to :func:`remove_block`.
    """
    target = directory.rstrip("/")
    offset = 0
    for segment in parse(text):
        if segment.kind == "other":
            for index, raw in enumerate(segment.lines):
                match = _DIR_PATTERN.match(raw.rstrip("\r\n"))
                if match is None or match.group("dir").rstrip("/") != target:
                    continue
                end = index + 1
                while end < len(segment.lines) and _PORT_PATTERN.match(
                    segment.lines[end].rstrip("\r\n")
                ):
                    end += 1
                return offset + index, offset + end
        offset += len(segment.lines)
    return None


def find_directives(text: str, directory: str) -> list[str]:
    """The unmarked directive lines for *directory*, without line endings."""
    span = _directive_span(text, directory)
    if span is None:
        return []
    lines = text.splitlines(keepends=True)
    return [line.rstrip("\r\n") for line in lines[span[0] : span[1]]]


def remove_directives(text: str, directory: str) -> tuple[str, bool]:
    """Drop the unmarked ``HiddenServiceDir``/``HiddenServicePort`` run for *directory*.

    Hand-written services have no marker, so :func:`remove_block` cannot
    see them. All other lines are left byte-identical.
    """
    span = _directive_span(text, directory)
    if span is None:
        return text, False
    lines = text.splitlines(keepends=True)
    del lines[span[0] : span[1]]
    return "".join(lines), True


@dataclass(frozen=True)
class DiscoveredService:
    """A ``HiddenServiceDir`` with the local port it forwards to."""

    name: str
    directory: str
    port: int
    host: str | None = None


def find_services(text: str) -> list[DiscoveredService]:
    """Every ``HiddenServiceDir`` followed by a ``HiddenServicePort``.

    Works over the whole file, managed blocks or not. The service name is
    the basename of the directory. Comment lines between the two
    directives are ignored; a second ``HiddenServiceDir`` before any port
    line drops the first.
    """
    found: list[DiscoveredService] = []
    pending: str | None = None
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        dir_match = _DIR_PATTERN.match(line)
        if dir_match:
            pending = dir_match.group("dir")
            continue
        port_match = _PORT_PATTERN.match(line)
        if port_match and pending is not None:
            name = PurePosixPath(pending.rstrip("/")).name
            port = int(port_match.group("port"))
            if name and 1 <= port <= 65535:
                found.append(
                    DiscoveredService(
                        name=name,
                        directory=pending.rstrip("/") or pending,
                        port=port,
                        host=port_match.group("host"),
                    )
                )
            pending = None
            continue
        if port_match is None:
            pending = None
    return found
