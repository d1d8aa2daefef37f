"""
Rendering functions for compver output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import List, Dict, Any, Optional

console = Console()


def render_table(headers: List[str], rows: List[List[Any]], title: Optional[str] = None,
                 empty_message: str = "No data to display.") -> None:
    """
    Render a generic table with the given headers and rows.

    Args:
        headers: List of column headers
        rows: List of rows, where each row is a list of values
        title: Optional table title
    """
    if not rows:
        console.print(f"[yellow]{empty_message}[/yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    for header in headers:
        table.add_column(header)

    for row in rows:
        table.add_row(*["" if val is None else str(val) for val in row])

    console.print(table)


def render_components_table(components: List[Dict[str, Any]]) -> None:
    """Registered components, one row each."""
    rows = []
    for c in components:
        status = c["status"] if c["status"] == "active" else f"[dim]{c['status']}[/dim]"
        rows.append([c["name"], c["type"], c["version"], c["path"], c["versions"], status, c["id"]])
    render_table(["Name", "Type", "Version", "Path", "History", "Status", "Id"], rows,
                 empty_message="No components registered. Run 'compver resync' to discover them.")


def render_component_detail(component: Dict[str, Any]) -> None:
    """One component with its cached version history."""
    console.print(f"[bold]{component['name']}[/bold] ({component['type']}) "
                  f"v{component['version']} [dim]{component['id']}[/dim]")
    console.print(f"  path:   {component['path']}")
    console.print(f"  status: {component['status']}")
    if component.get("namespace"):
        console.print(f"  tags:   {component['namespace']}/...")
    rows = [[e["version"], e["commit"][:8], e["timestamp"], e["path"], e["message"]]
            for e in component.get("version_history", [])]
    render_table(["Version", "Commit", "Date", "Path", "Message"], rows,
                 title="History", empty_message="No version history.")


def render_tags_table(tags: List[Dict[str, Any]]) -> None:
    """Version and deployment tags."""
    rows = []
    for t in tags:
        kind = "[green]version[/green]" if t["kind"] == "version" else "[cyan]deployment[/cyan]"
        rows.append([t.get("component", ""), t["slot"], kind, t["commit"][:8], t["date"]])
    render_table(["Component", "Tag", "Kind", "Commit", "Date"], rows, empty_message="No tags.")


def render_tag_detail(info: Dict[str, Any]) -> None:
    console.print(f"[bold]{info['tag']}[/bold] ({info['kind']})")
    console.print(f"  commit:  {info['commit']}")
    console.print(f"  author:  {info['author']}")
    console.print(f"  date:    {info['date']}")
    if info.get("message"):
        console.print(f"  message: {info['message']}")


def render_deployments_table(deployments: List[Dict[str, Any]]) -> None:
    """Where each component is deployed."""
    rows = [[d["environment"], d["component"], d["version"] or "[dim]unversioned[/dim]",
             d["commit"][:8], d["date"]] for d in deployments]
    render_table(["Environment", "Component", "Version", "Commit", "Date"], rows,
                 empty_message="Nothing deployed.")


def render_resync_report(report: Dict[str, Any], verbose: bool = False) -> None:
    """Summary of a resync, with each fix when verbose or dry-running."""
    prefix = "[yellow]Dry run:[/yellow] " if report["dry_run"] else ""
    if report.get("registry_error"):
        console.print(f"[yellow]Registry was unreadable, starting from an empty one:[/yellow] "
                      f"{report['registry_error']}")
    console.print(
        f"{prefix}scanned {report['scanned']} file(s): "
        f"{report['added']} added, {report['updated']} updated, {report['removed']} removed, "
        f"{report['header_updates']} header update(s), "
        f"{report['versions_recovered']} version(s) recovered"
    )
    fixes = report["fixes"]
    if fixes and (verbose or report["dry_run"]):
        render_table(["Fix", "Component", "Path", "Detail"],
                     [[f["kind"], f["component"], f["path"], f["detail"]] for f in fixes])
    if not fixes:
        console.print("[green]Registry, headers and history are consistent.[/green]")
    for error in report["errors"]:
        console.print(f"[red]✗[/red] {error['path']}: {error['error']}")


def render_detections(results: List[Dict[str, Any]]) -> None:
    """Per-file classification from `compver detect`."""
    for r in results:
        detected = r["detected"]
        if detected is None:
            console.print(f"[bold]{r['path']}[/bold]: [dim]not a component[/dim]")
        else:
            console.print(f"[bold]{r['path']}[/bold]: {detected['type']} "
                          f"'{detected['name']}' ({detected['confidence']} confidence, {detected['rule']})")
        if r["header"]:
            console.print(f"  header:     {r['header']['component']} v{r['header']['version']}")
        if r["registered"]:
            console.print(f"  registered: {r['registered']}")


def render_discovered(rows: List[Dict[str, Any]]) -> None:
    """Candidate files found by `compver discover`."""
    table_rows = [[r["path"], r["type"], r["name"], r["confidence"], r["header_version"],
                   r["registered"] or "[yellow]no[/yellow]"] for r in rows]
    render_table(["Path", "Type", "Name", "Confidence", "Header", "Registered"], table_rows,
                 empty_message="No candidate components found.")
