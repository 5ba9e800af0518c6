#!/usr/bin/env python3
"""Black Star Forge CLI - submit orders and make approval decisions.

Usage:
    # Submit an order and wait for it to reach awaiting_approval
    python main.py submit --name "Dog Walker" --requirements "Landing page with Stripe checkout"

    # Requirements from a file, keyed by your own order id
    python main.py submit --name "Dog Walker" --file ./brief.md --order-id dogwalk-1

    # Decide
    python main.py approve dogwalk-1
    python main.py reject dogwalk-1 --reason "Wrong colour scheme"
"""

import sys
from pathlib import Path
from typing import Optional

try:
    import click
    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table
except ImportError:
    print("Missing dependencies. Run: pip install click rich")
    sys.exit(1)

from contracts import ProjectState, ProjectStatus, ProjectNotFoundError, InvalidProjectStateError
from orchestrator import ErrorHandler, build_orchestrator
from providers import list_providers as get_available_providers
from log_config import configure_logging
from config import settings


console = Console()

STATUS_STYLES = {
    ProjectStatus.COMPLETED: "green",
    ProjectStatus.FAILED: "red",
    ProjectStatus.AWAITING_APPROVAL: "yellow",
}


def _print_state(state: ProjectState) -> None:
    style = STATUS_STYLES.get(state.status, "cyan")
    console.print(f"[green]Order ID:[/green] {state.order_id}")
    console.print(f"[green]Project:[/green] {state.project_name}")
    console.print(f"[green]Status:[/green] [{style}]{state.status.value}[/{style}]")
    if state.platforms:
        console.print(f"[green]Platforms:[/green] {', '.join(sorted(p.value for p in state.platforms))}")
    if state.plan:
        table = Table(title="Plan")
        table.add_column("Step")
        table.add_column("Title")
        table.add_column("Status")
        table.add_column("Retries", justify="right")
        for step in state.plan:
            table.add_row(step.id, step.title, step.status.value, str(step.retries))
        console.print(table)
    for platform, result in state.per_platform_results.items():
        mark = "[green]ok[/green]" if result.success else f"[red]{result.error}[/red]"
        console.print(f"  {platform.value}: {mark}")
    for platform, url in state.deployment_urls.items():
        console.print(f"[bold]{platform.value} URL:[/bold] {url}")
    if state.rejection_reason:
        console.print(f"[yellow]Rejected:[/yellow] {state.rejection_reason}")
    elif state.last_error:
        console.print(f"[red]Error:[/red] {state.last_error}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Black Star Forge: autonomous project-order fulfilment.

    Orders are planned, coded, built and verified automatically, then wait
    for a human approval before anything reaches production.
    """
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file)
    ctx.ensure_object(dict)


def _orchestrator(ctx: click.Context):
    if "orchestrator" not in ctx.obj:
        ctx.obj["orchestrator"] = build_orchestrator()
    return ctx.obj["orchestrator"]


@cli.command()
@click.option("--name", "-n", "project_name", required=True, help="Project name")
@click.option("--requirements", "-r", default=None, help="Requirements text")
@click.option("--file", "-f", "requirements_file", default=None, help="Read requirements from a file")
@click.option("--order-id", default=None, help="Order id (random when omitted)")
@click.pass_context
def submit(
    ctx: click.Context,
    project_name: str,
    requirements: Optional[str],
    requirements_file: Optional[str],
    order_id: Optional[str],
):
    """Submit a new project order and run it up to the approval gate."""
    if requirements_file:
        path = Path(requirements_file)
        if not path.is_file():
            console.print(f"[red]Error: {requirements_file} not found[/red]")
            sys.exit(1)
        requirements = path.read_text(encoding="utf-8", errors="replace")
    if not requirements or not requirements.strip():
        console.print("[red]Error: --requirements or --file is required[/red]")
        sys.exit(1)

    console.print(Panel.fit(
        "[bold blue]Black Star Forge[/bold blue]\n"
        "[dim]Autonomous project-order fulfilment[/dim]",
        border_style="blue"
    ))

    orchestrator = _orchestrator(ctx)
    try:
        state = orchestrator.submit(project_name, requirements, order_id=order_id)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    console.print(f"[dim]Order received:[/dim] {state.order_id}")

    with console.status("Planning, coding and building..."):
        state = orchestrator.wait_for_project(state.order_id)
    orchestrator.shutdown()

    console.print("\n" + "=" * 60)
    _print_state(state)
    if state.status == ProjectStatus.AWAITING_APPROVAL:
        console.print(f"\nApprove with: [bold]blackstar approve {state.order_id}[/bold]")
    console.print("=" * 60)
    if state.status == ProjectStatus.FAILED:
        sys.exit(1)


@cli.command()
@click.argument("order_id")
@click.pass_context
def status(ctx: click.Context, order_id: str):
    """Show one project's state."""
    try:
        state = _orchestrator(ctx).get_project_status(order_id)
    except ProjectNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    _print_state(state)


@cli.command(name="list")
@click.pass_context
def list_projects(ctx: click.Context):
    """List every known project."""
    projects = _orchestrator(ctx).list_projects()
    if not projects:
        console.print("No projects.")
        return
    table = Table(title="Projects")
    table.add_column("Order ID")
    table.add_column("Project")
    table.add_column("Status")
    table.add_column("Updated")
    for state in projects:
        style = STATUS_STYLES.get(state.status, "cyan")
        table.add_row(
            state.order_id,
            state.project_name,
            f"[{style}]{state.status.value}[/{style}]",
            state.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@cli.command()
@click.pass_context
def stats(ctx: click.Context):
    """Project counts per status."""
    statistics = _orchestrator(ctx).get_statistics()
    table = Table(title="Statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in statistics.items():
        table.add_row(key, f"${value:.4f}" if key == "generation_cost_usd" else str(value))
    console.print(table)


@cli.command()
@click.argument("order_id")
@click.pass_context
def approve(ctx: click.Context, order_id: str):
    """Approve a verified project and deploy it to production."""
    orchestrator = _orchestrator(ctx)
    try:
        with console.status("Deploying to production..."):
            result = orchestrator.approve_deployment(order_id)
    except (ProjectNotFoundError, InvalidProjectStateError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not result.success:
        console.print(f"[red]Deployment failed:[/red] {result.error}")
        sys.exit(1)
    console.print("[green]Deployed.[/green]")
    for platform, url in result.urls.items():
        console.print(f"  {platform.value}: {url}")


@cli.command()
@click.argument("order_id")
@click.option("--reason", required=True, help="Why the project is rejected")
@click.pass_context
def reject(ctx: click.Context, order_id: str, reason: str):
    """Reject a verified project."""
    try:
        _orchestrator(ctx).reject_deployment(order_id, reason)
    except (ProjectNotFoundError, InvalidProjectStateError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    console.print(f"[yellow]Rejected {order_id}:[/yellow] {reason}")


@cli.command()
@click.option("--older-than-hours", type=float, default=None, help="Retention window (default from settings)")
@click.pass_context
def prune(ctx: click.Context, older_than_hours: Optional[float]):
    """Forget finished projects older than the retention window."""
    removed = _orchestrator(ctx).prune_projects(older_than_hours)
    console.print(f"Pruned {len(removed)} projects.")
    for order_id in removed:
        console.print(f"  - {order_id}")


@cli.command(name="check-env")
@click.pass_context
def check_env(ctx: click.Context):
    """Report missing credentials and platform tooling. Never blocks."""
    orchestrator = _orchestrator(ctx)
    report = ErrorHandler().check_environment(
        settings, extra_missing=orchestrator.logistics.validate_environment()
    )
    for name in report.present:
        console.print(f"  {name:36} [green]✓ Set[/green]")
    for name in report.missing:
        console.print(f"  {name:36} [red]✗ Missing[/red]")
    if not report.ok:
        console.print("\n[yellow]Features that need the missing items will fail when used.[/yellow]")


@cli.command()
def providers():
    """List LLM providers and whether their API key is set."""
    console.print("[bold]Available LLM Providers:[/bold]\n")
    for name, available in get_available_providers().items():
        status_text = "[green]✓ Ready[/green]" if available else "[red]✗ No API key[/red]"
        console.print(f"  {name:12} {status_text}")
    console.print(f"\n[dim]Coder model:[/dim] {settings.coder_model}")
    console.print(f"[dim]Reasoning model:[/dim] {settings.reasoning_model}")
    console.print(f"[dim]Vision model:[/dim] {settings.vision_model}")


if __name__ == "__main__":
    cli()
