"""Evidence linking CLI using Typer and Rich.

Catalogs are read from JSON files (a list of evidence records and a list of
requirement records). Links persist in the JSON file given by --links or
LINK_STORE_PATH; without one they live only for the duration of a command.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from compliance_linker.config.logging import configure_logging, get_logger
from compliance_linker.config.settings import settings
from compliance_linker.data_management.link_store import LinkStore
from compliance_linker.data_management.schemas import (
    BatchResult,
    CoverageEntry,
    DerivedLinkStatus,
    LinkAttributes,
    LinkPriority,
    LinkType,
)
from compliance_linker.errors import LinkingError
from compliance_linker.pipeline.linking_pipeline import LinkingPipeline, display_rate
from compliance_linker.reporting.export import (
    default_filename,
    format_file_size,
    linking_csv,
    report_json,
    tree_nodes_csv,
    write_export,
)
from compliance_linker.utils.logging import configure_structured_logging

app = typer.Typer(
    help="Compliance Evidence Linker - link audit evidence to standard requirements",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")

EvidenceOption = typer.Option(..., "--evidence", "-e", help="Evidence catalog JSON file")
RequirementsOption = typer.Option(..., "--requirements", "-r", help="Requirement catalog JSON file")
FactoryOption = typer.Option(None, "--factory", "-f", help="Factory id (defaults to OWNER_SCOPE)")
LinksOption = typer.Option(None, "--links", "-l", help="Link store JSON file (defaults to LINK_STORE_PATH)")

STATUS_STYLES = {
    DerivedLinkStatus.UNLINKED: "red",
    DerivedLinkStatus.LINKED: "yellow",
    DerivedLinkStatus.VERIFIED: "green",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
) -> None:
    """Link audit evidence to compliance-standard requirements."""
    if verbose:
        configure_logging(level="DEBUG")
        configure_structured_logging(level="DEBUG")


def _read_catalog(path: Path) -> list[dict[str, Any]]:
    """Read a JSON list of records."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"[red]✗[/red] Cannot read catalog {path}: {e}")
        raise typer.Exit(1)
    if not isinstance(data, list):
        console.print(f"[red]✗[/red] Catalog {path} must contain a JSON list")
        raise typer.Exit(1)
    return data


async def _open_pipeline(
    evidence: Path,
    requirements: Path,
    factory: Optional[str],
    links: Optional[Path],
) -> LinkingPipeline:
    link_path = str(links) if links else settings.link_store_path
    pipeline = LinkingPipeline(owner_scope=factory, link_store=LinkStore(link_path))
    stats = await pipeline.load_catalogs(_read_catalog(evidence), _read_catalog(requirements))
    for name, load_stats in stats.items():
        if load_stats["rejected"]:
            console.print(
                f"[yellow]⚠[/yellow] {load_stats['rejected']} {name} record(s) rejected"
            )
    return pipeline


def _run(coro: Any) -> Any:
    """Run a coroutine, turning linking errors into a non-zero exit."""
    try:
        return asyncio.run(coro)
    except LinkingError as e:
        console.print(f"\n[red]✗[/red] {e}")
        logger.error(f"Command failed: {e}")
        raise typer.Exit(1)


def _print_batch(title: str, result: BatchResult) -> None:
    console.print(f"[green]✓[/green] {title}: {result.succeeded}")
    if result.failed:
        table = Table(title="Failures", show_header=True, header_style="bold red")
        table.add_column("Item", style="cyan")
        table.add_column("Error", style="red")
        table.add_column("Message", style="yellow")
        for item in result.failed:
            table.add_row(item.item_id, item.error_type, item.message)
        console.print(table)


def _coverage_table(title: str, entries: list[CoverageEntry]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Group", style="cyan")
    table.add_column("Linked", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Coverage", style="green", justify="right")
    for entry in entries:
        table.add_row(
            entry.key,
            str(entry.linked_requirements),
            str(entry.total_requirements),
            f"{entry.coverage:.2f}%",
        )
    return table


def _attributes(
    link_type: LinkType,
    strength: int,
    description: str,
    tags: str,
    priority: LinkPriority,
) -> LinkAttributes:
    return LinkAttributes(
        link_type=link_type,
        strength=strength,
        description=description,
        tags=LinkAttributes.parse_tags(tags),
        priority=priority,
    )


@app.command()
def status(
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    unlinked_only: bool = typer.Option(False, "--unlinked", help="Only list unlinked evidence"),
) -> None:
    """
    Display linking statistics and the derived status of every evidence item.
    """
    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        stats = await pipeline.stats()
        statuses = await pipeline.status.statuses(pipeline.owner_scope)
        items = await pipeline.evidence_store.list_evidence(pipeline.owner_scope)

        console.print(f"[bold]Evidence:[/bold] {stats.total_evidence}")
        console.print(f"[bold]Unlinked:[/bold] {stats.unlinked_evidence}")
        console.print(
            f"[bold]Links:[/bold] {stats.total_links} "
            f"({stats.linked_today} today, {stats.unverified_links} unverified)"
        )
        console.print(f"[bold]Coverage:[/bold] {stats.coverage_rate}%")

        table = Table(title="Evidence Status", show_header=True, header_style="bold magenta")
        table.add_column("Evidence", style="cyan")
        table.add_column("Name")
        table.add_column("Kind")
        table.add_column("Size", justify="right")
        table.add_column("Links", justify="right")
        table.add_column("Status")
        for item in items:
            item_status = statuses[item.evidence_id]
            if unlinked_only and item_status != DerivedLinkStatus.UNLINKED:
                continue
            count = await pipeline.status.link_count(item.evidence_id)
            style = STATUS_STYLES[item_status]
            table.add_row(
                item.evidence_id,
                item.name,
                item.kind.value if item.kind else "",
                format_file_size(item.size_bytes),
                str(count),
                f"[{style}]{item_status.value}[/{style}]",
            )
        console.print(table)

    logger.info("Displaying linking status")
    _run(run())


@app.command()
def coverage(
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    namespaced: bool = typer.Option(False, "--namespaced", help="Show coverage per standard/category"),
) -> None:
    """
    Display requirement coverage overall, by standard and by category.
    """
    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        summary = await pipeline.coverage()
        console.print(
            f"[bold]Overall coverage:[/bold] {summary.overall:.2f}% "
            f"({summary.linked_requirements}/{summary.total_requirements} requirements, "
            f"displayed as {display_rate(summary.overall)}%)"
        )
        console.print(_coverage_table("Coverage by Standard", summary.by_standard))
        if namespaced:
            console.print(
                _coverage_table("Coverage by Standard/Category", summary.by_standard_category)
            )
        else:
            console.print(_coverage_table("Coverage by Category", summary.by_category))

    _run(run())


@app.command("auto-link")
def auto_link(
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
) -> None:
    """
    Link unlinked evidence to requirements matching its declared standard and code.
    """
    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        result = await pipeline.auto_link()
        if result.succeeded == 0 and not result.failed:
            console.print("[dim]No evidence could be auto-linked[/dim]")
            return
        _print_batch("Auto-linked", result)

    logger.info("Running auto-link")
    _run(run())


@app.command()
def link(
    evidence_id: str = typer.Argument(..., help="Evidence id to link"),
    requirement_ids: list[str] = typer.Option(..., "--to", "-t", help="Requirement id (repeatable)"),
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    link_type: LinkType = typer.Option(LinkType.DIRECT, "--type", help="Link type"),
    strength: int = typer.Option(3, "--strength", min=1, max=5, help="Link strength 1-5"),
    description: str = typer.Option("", "--description", help="Link description"),
    tags: str = typer.Option("", "--tags", help="Comma-separated tags"),
    priority: LinkPriority = typer.Option(LinkPriority.MEDIUM, "--priority", help="Review priority"),
) -> None:
    """
    Link one evidence item to one or more requirements.
    """
    attributes = _attributes(link_type, strength, description, tags, priority)

    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        result = await pipeline.link_evidence(evidence_id, requirement_ids, attributes)
        _print_batch(f"Links created for {evidence_id}", result)

    logger.info(f"Linking evidence {evidence_id}", requirements=len(requirement_ids))
    _run(run())


@app.command("bulk-link")
def bulk_link(
    evidence_ids: list[str] = typer.Option(..., "--item", "-i", help="Evidence id (repeatable)"),
    requirement_ids: list[str] = typer.Option(..., "--to", "-t", help="Requirement id (repeatable)"),
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    link_type: LinkType = typer.Option(LinkType.DIRECT, "--type", help="Link type"),
    strength: int = typer.Option(3, "--strength", min=1, max=5, help="Link strength 1-5"),
    description: str = typer.Option("", "--description", help="Link description"),
    tags: str = typer.Option("", "--tags", help="Comma-separated tags"),
    priority: LinkPriority = typer.Option(LinkPriority.MEDIUM, "--priority", help="Review priority"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the large-batch confirmation"),
) -> None:
    """
    Link every given evidence item to every given requirement.
    """
    attributes = _attributes(link_type, strength, description, tags, priority)

    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        for evidence_id in evidence_ids:
            pipeline.selection.toggle_evidence(evidence_id, True)
        for requirement_id in requirement_ids:
            pipeline.selection.toggle_requirement(requirement_id, True)

        potential = pipeline.selection.potential_link_count
        if (
            pipeline.selection.exceeds_threshold(settings.bulk_link_warn_threshold)
            and not yes
            and not typer.confirm(f"This will create {potential} links. Continue?")
        ):
            console.print("[dim]Bulk link cancelled[/dim]")
            return

        result = await pipeline.bulk_link_selection(attributes)
        _print_batch("Links created", result)

    _run(run())


@app.command()
def verify(
    link_ids: list[str] = typer.Option([], "--link", help="Link id to verify (repeatable)"),
    all_unverified: bool = typer.Option(False, "--all", help="Verify every unverified link"),
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
) -> None:
    """
    Mark links as verified by the acting user (ACTOR_ID).
    """
    if not link_ids and not all_unverified:
        console.print("[red]✗[/red] Pass --link at least once or --all")
        raise typer.Exit(1)

    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        if all_unverified:
            result = await pipeline.verify_all_unverified()
        else:
            result = await pipeline.verify(link_ids)
        _print_batch("Links verified", result)

    _run(run())


@app.command()
def clear(
    evidence_ids: list[str] = typer.Option(..., "--item", "-i", help="Evidence id (repeatable)"),
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Remove every link of the given evidence items.
    """
    if not yes and not typer.confirm(
        f"Clear all links for {len(evidence_ids)} evidence item(s)?"
    ):
        raise typer.Exit(0)

    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        result = await pipeline.clear_links(evidence_ids)
        _print_batch("Links removed", result)

    _run(run())


@app.command()
def export(
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    fmt: str = typer.Option("linking", "--format", help="linking, tree or json"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
) -> None:
    """
    Export the linking report as CSV (linking, tree) or JSON.
    """
    if fmt not in ("linking", "tree", "json"):
        console.print(f"[red]✗[/red] Unknown format: {fmt}")
        raise typer.Exit(1)

    async def run() -> Path:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        report = await pipeline.generate_report()
        if fmt == "linking":
            content = linking_csv(report)
            target = output or Path(default_filename("evidence_linking_report", "csv"))
        elif fmt == "tree":
            content = tree_nodes_csv(await pipeline.status.requirements_tree(pipeline.owner_scope))
            target = output or Path(default_filename("requirements_tree", "csv"))
        else:
            content = report_json(report)
            target = output or Path(default_filename("evidence_linking_report", "json"))
        return write_export(content, target)

    path = _run(run())
    console.print(f"[green]✓[/green] Exported {fmt} report to {path}")


@app.command()
def tree(
    evidence: Path = EvidenceOption,
    requirements: Path = RequirementsOption,
    factory: Optional[str] = FactoryOption,
    links: Optional[Path] = LinksOption,
    standard: Optional[str] = typer.Option(None, "--standard", "-s", help="Only this standard"),
) -> None:
    """
    Display requirements grouped by standard and category with evidence counts.
    """
    async def run() -> None:
        pipeline = await _open_pipeline(evidence, requirements, factory, links)
        nodes = await pipeline.status.requirements_tree(pipeline.owner_scope, standard)
        for standard_node in nodes:
            table = Table(
                title=f"{standard_node.display_name} ({standard_node.requirement_count})",
                show_header=True,
                header_style="bold magenta",
            )
            table.add_column("Category", style="cyan")
            table.add_column("Code", style="yellow")
            table.add_column("Title")
            table.add_column("Evidence", justify="right")
            for category_node in standard_node.categories:
                for node in category_node.requirements:
                    table.add_row(
                        category_node.category,
                        node.requirement.code,
                        node.requirement.title,
                        str(node.evidence_count),
                    )
            console.print(table)

    _run(run())


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]Compliance Evidence Linker[/bold]")
    console.print("Version: 0.1.0")


if __name__ == "__main__":
    app()
