"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a StringIO-backed Rich Console. Renderers are
dispatched by ``result.op`` in :func:`render_result`; unknown ops fall
through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from onionctl.output.console import create_console, get_output, style_for_status, style_for_web

if TYPE_CHECKING:
    from rich.console import Console

    from onionctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Plain text (no ANSI) when Rich detects no terminal, which is the case
    inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="onion.ok")
    op = Text(f"  {result.op}", style="onion.op")
    console.print(label, op, sep="", end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="onion.key")
    if key == "name":
        v = Text(str(value), style="onion.name")
    elif key in {"address", "onion_url"}:
        v = Text(str(value), style="onion.address")
    elif key in {"directory", "website_directory", "registry"}:
        v = Text(str(value), style="onion.path")
    elif key == "status":
        v = Text(str(value), style=style_for_status(str(value)))
    else:
        v = Text(str(value))
    console.print(k, v, sep="", end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, including the telemetry span tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{ak}={av}" for ak, av in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _styled(value: str, style: str) -> Text:
    return Text(value, style=style)


def _render_removal_summary(console: Console, data: dict[str, Any]) -> None:
    _field(console, "succeeded", data.get("succeeded", 0))
    _field(console, "failed", data.get("failed_count", 0))
    for name in data.get("removed", []):
        console.print(Text("  removed", style="onion.ok"), Text(name))
    for item in data.get("failed", []):
        console.print(
            Text("  failed ", style="onion.error"), Text(f"{item['name']}: {item['reason']}")
        )


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="onion.error")
    op = Text(f"  {result.op}", style="onion.op")
    console.print(label, op, Text(" - "), Text(msg), sep="")

    detail = dict(err.detail) if err else {}
    remediation = detail.pop("remediation", None)
    hints = detail.pop("hints", None) or []
    if remediation:
        console.print(f"  [onion.warning]fix:[/onion.warning] {remediation}")
    if hints:
        console.print(Text("  troubleshooting:", style="onion.warning"))
        for hint in hints:
            console.print(f"    - {hint}", markup=False)

    if result.op == "remove" and result.data:
        _render_removal_summary(console, result.data)
    elif "service" in result.data:
        for key, value in result.data["service"].items():
            if key in {"name", "directory", "port", "status"}:
                _field(console, key, value)

    if verbose and detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in detail.items():
            console.print(f"    {k}: {v}")
    if verbose:
        _render_meta(console, result)


# ── Lifecycle renderers ───────────────────────────────────────────────


def _render_create(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Panel with the new onion address and where it is served from."""
    d = result.data
    service = d.get("service", {})
    lines = [
        f"[onion.key]name:[/onion.key]      [onion.name]{service.get('name', '')}[/onion.name]",
        f"[onion.key]address:[/onion.key]   [onion.address]{d.get('onion_url', '')}[/onion.address]",
        f"[onion.key]local:[/onion.key]     {d.get('local_url', '')}",
        f"[onion.key]directory:[/onion.key] {service.get('directory', '')}",
    ]
    if service.get("website_directory"):
        lines.append(f"[onion.key]website:[/onion.key]   {service['website_directory']}")
    console.print(
        Panel(
            "\n".join(lines),
            title="[onion.ok]Onion service created[/onion.ok]",
            expand=False,
        )
    )
    if verbose:
        _render_meta(console, result)


def _render_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    services = result.data.get("services", [])
    if not services:
        _status_line(console, result)
        console.print("  No services registered.")
        if verbose:
            _render_meta(console, result)
        return

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Name", style="onion.name", no_wrap=True)
    table.add_column("Status")
    table.add_column("Address", style="onion.address")
    table.add_column("Port", justify="right")
    table.add_column("Managed")
    table.add_column("Web")
    table.add_column("Local")
    table.add_column("Binding")
    if verbose:
        table.add_column("Directory", style="onion.path")
        table.add_column("Created", style="dim")

    for svc in services:
        status = str(svc.get("status", ""))
        web = str(svc.get("web_status", ""))
        row: list[Any] = [
            str(svc.get("name", "")),
            _styled(status, style_for_status(status)),
            str(svc.get("address", "")) or "-",
            str(svc.get("port", "")),
            str(svc.get("managed_label", "")),
            _styled(web, style_for_web(web)),
            str(svc.get("local_url", "")),
            str(svc.get("binding", "")),
        ]
        if verbose:
            row.append(str(svc.get("directory", "")))
            row.append(str(svc.get("created_at", "")))
        table.add_row(*row)

    console.print(table)
    console.print(f"  {result.data.get('count', len(services))} service(s)")
    if verbose:
        _field(console, "registry", result.data.get("registry", ""))
        _render_meta(console, result)


def _render_test(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    results = result.data.get("results", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Name", style="onion.name", no_wrap=True)
    table.add_column("Status")
    table.add_column("Port", justify="right")
    table.add_column("Probe")
    table.add_column("Web")
    table.add_column("Local")

    for item in results:
        status = str(item.get("status", ""))
        probe = str(item.get("probe", ""))
        web = str(item.get("web_status", ""))
        table.add_row(
            str(item.get("name", "")),
            _styled(status, style_for_status(status)),
            str(item.get("port", "")),
            _styled(probe, style_for_web(probe)),
            _styled(web, style_for_web(web)),
            str(item.get("local_url", "")),
        )

    if results:
        console.print(table)
    totals = result.data.get("totals", {})
    _status_line(console, result)
    for key in ("tested", "active", "responsive"):
        _field(console, key, totals.get(key, 0))
    if verbose:
        _render_meta(console, result)


def _render_stop(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "name", d.get("name", ""))
    method = d.get("method")
    if method == "unit":
        _field(console, "stopped", "system service")
    elif method == "pid":
        _field(console, "stopped", "web server process")
    else:
        _field(console, "stopped", "nothing was running")
    if verbose:
        _render_meta(console, result)


def _render_remove_plan(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Preview of everything a removal will delete."""
    d = result.data
    console.print(Text("The following will be PERMANENTLY deleted:", style="onion.warning"))
    for svc in d.get("services", []):
        console.print()
        _field(console, "name", svc["name"])
        if svc.get("address"):
            _field(console, "address", svc["address"])
        _field(console, "managed", "yes" if svc.get("managed") else "no")
        directory = svc["directory"]
        if not svc.get("directory_exists"):
            directory += " (missing)"
        _field(console, "directory", directory)
        for site in svc.get("website_directories", []):
            _field(console, "website_directory", site)
        if svc.get("torrc_lines"):
            console.print(Text("  torrc lines:", style="onion.key"))
            for line in svc["torrc_lines"]:
                console.print(f"    {line}", markup=False)

    totals = d.get("totals", {})
    console.print()
    console.print(
        f"  Totals: {totals.get('services', 0)} service(s), "
        f"{totals.get('directories', 0)} service dir(s), "
        f"{totals.get('website_directories', 0)} website dir(s), "
        f"{totals.get('managed', 0)} managed, "
        f"{totals.get('torrc_blocks', 0)} torrc block(s)"
    )
    if d.get("invalid"):
        console.print(f"  [onion.error]Not found:[/onion.error] {', '.join(d['invalid'])}")


def _render_remove(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _render_removal_summary(console, result.data)
    if verbose:
        _render_meta(console, result)


def _render_sync(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "services", d.get("count", 0))
    if d.get("discovered"):
        _field(console, "discovered", ", ".join(d["discovered"]))
    if d.get("changed"):
        _field(console, "changed", ", ".join(d["changed"]))
    if verbose:
        _render_meta(console, result)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "create": _render_create,
    "list": _render_list,
    "test": _render_test,
    "stop": _render_stop,
    "remove_plan": _render_remove_plan,
    "remove": _render_remove,
    "sync": _render_sync,
}
