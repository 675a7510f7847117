"""CLI entry point for promptship."""

from __future__ import annotations

import asyncio
import functools
from pathlib import Path
from typing import Annotated, TypeVar

import typer
import yaml
from pydantic import BaseModel, ValidationError
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from promptship.config import PromptShipConfig, load_config
from promptship.config.loader import DEFAULT_CONFIG_TEMPLATE
from promptship.errors import PromptShipError
from promptship.generation import GenerationResult, LLMGenerator
from promptship.llm import create_llm_provider
from promptship.log import setup_logging
from promptship.pipeline import PromptPipeline, reconcile_with_files
from promptship.reconciler import ContextReconciler, ReconciledContext, RepoContext
from promptship.validator import ChangeSet, ChangeSetValidator
from promptship.vcs import (
    Publisher,
    PullRequestResult,
    VCSProvider,
    create_provider,
    parse_repo_url,
)

app = typer.Typer(
    name="promptship",
    help="Turn a plain-language request into a validated BuildShip pull request.",
)

config_app = typer.Typer(help="Manage promptship configuration.")
app.add_typer(config_app, name="config")

ModelT = TypeVar("ModelT", bound=BaseModel)

# Global state
_config: PromptShipConfig | None = None


def _get_config() -> PromptShipConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to promptship.yaml")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    setup_logging("debug" if verbose else _config.log_level, _config.log_format)


def _repo_id(repo: str) -> str:
    ref = parse_repo_url(repo)
    if ref is None:
        raise ValueError(f"Invalid repository '{repo}': expected a GitHub URL or 'owner/repo'")
    return ref.full_name


def _display_changeset(changeset: ChangeSet) -> None:
    table = Table(title=f"{changeset.title} ({len(changeset.files)} files)")
    table.add_column("Path", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Size", justify="right")
    for f in changeset.files:
        table.add_row(f.path, f.type, f"{len(f.content)} chars")
    rprint(table)
    rprint(Panel(escape(changeset.summary), title="Summary", border_style="blue"))


def _display_result(result: PullRequestResult) -> None:
    rprint(Panel(
        f"[dim]PR:[/dim]      #{result.number} {result.url}\n"
        f"[dim]Branch:[/dim]  {result.branch} -> {result.base_branch}\n"
        f"[dim]Commit:[/dim]  {result.commit_sha}\n"
        f"[dim]Files:[/dim]   {len(result.files)}",
        title="Pull Request Opened",
        border_style="green",
    ))


def _display_context(reconciled: ReconciledContext) -> None:
    index = reconciled.index.describe()
    deps = reconciled.dependencies
    if deps is None:
        deps_text = "no package.json"
    else:
        deps_text = ", ".join(sorted(deps)) or "none"
    rprint(Panel(
        f"[dim]Identifier policy:[/dim] {reconciled.identifier_policy}\n"
        f"[dim]Artifacts:[/dim]         {len(index)}\n"
        f"[dim]Labels:[/dim]            {len(reconciled.labels)}\n"
        f"[dim]Dependencies:[/dim]      {deps_text}",
        title="Repository Context",
        border_style="blue",
    ))
    if index:
        table = Table(title="Existing Artifacts")
        table.add_column("Artifact", style="cyan")
        table.add_column("Label", style="yellow")
        for art, entry in zip(reconciled.index, index):
            table.add_row(entry, reconciled.labels.get(art.identifier, "-"))
        rprint(table)


@app.command()
def generate(
    repo: str = typer.Argument(..., help="GitHub URL or owner/repo"),
    prompt: str = typer.Argument(..., help="What to build or change"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without publishing"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Publish without confirmation"),
    out: Annotated[
        str | None, typer.Option("--out", "-o", help="Save the change set as JSON")
    ] = None,
) -> None:
    """Generate a change set from a request and open a pull request."""
    cfg = _get_config()
    try:
        repo_id = _repo_id(repo)
        provider = create_provider(cfg.vcs)
        llm = create_llm_provider(cfg.llm)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    rprint(f"[bold]Generating[/bold] for {repo_id} (llm: {cfg.llm.provider})...")
    pipeline = PromptPipeline(LLMGenerator(llm), cfg)

    async def _prepare() -> ChangeSet:
        context = await provider.load_context(repo_id)
        return await pipeline.prepare(
            prompt,
            context,
            previous_files=functools.partial(provider.fetch_previous_files, repo_id),
        )

    try:
        changeset = asyncio.run(_prepare())
    except PromptShipError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _display_changeset(changeset)
    if out:
        Path(out).write_text(changeset.model_dump_json(indent=2))
        rprint(f"[green]Saved[/green] {out}")

    if dry_run:
        rprint("[yellow](dry run, nothing published)[/yellow]")
        return
    if not yes and not typer.confirm(f"Open a pull request on {repo_id}?"):
        rprint("[yellow]Aborted.[/yellow]")
        raise typer.Exit(0)

    _publish(repo_id, changeset, cfg, provider)


def _publish(
    repo_id: str, changeset: ChangeSet, cfg: PromptShipConfig, provider: VCSProvider
) -> None:
    publisher = Publisher(provider, cfg.vcs, title_prefix=cfg.pr.title_prefix)
    try:
        result = asyncio.run(publisher.publish(repo_id, changeset))
    except PromptShipError as e:
        rprint(f"[red]Publish failed:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    _display_result(result)


def _load_json(path: str, model: type[ModelT]) -> ModelT:
    try:
        return model.model_validate_json(Path(path).read_text())
    except (OSError, ValidationError) as e:
        rprint(f"[red]Error:[/red] could not read {path}: {escape(str(e))}")
        raise typer.Exit(1)


@app.command()
def publish(
    repo: str = typer.Argument(..., help="GitHub URL or owner/repo"),
    changeset_json: str = typer.Argument(..., help="Change set saved with generate --out"),
) -> None:
    """Publish a saved change set as a pull request."""
    cfg = _get_config()
    changeset = _load_json(changeset_json, ChangeSet)
    try:
        repo_id = _repo_id(repo)
        provider = create_provider(cfg.vcs)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    _display_changeset(changeset)
    _publish(repo_id, changeset, cfg, provider)


@app.command()
def validate(
    changeset_json: str = typer.Argument(..., help="Saved change set or generator output"),
    repo: Annotated[
        str | None, typer.Option("--repo", "-r", help="Validate against this repository")
    ] = None,
    prompt: Annotated[
        str | None, typer.Option("--prompt", "-p", help="Request the files were generated for")
    ] = None,
    offline: bool = typer.Option(False, "--offline", help="Validate without repository context"),
) -> None:
    """Re-run the validator on saved files."""
    cfg = _get_config()
    result = _load_json(changeset_json, GenerationResult)

    provider = None
    repo_id = None
    if repo and not offline:
        try:
            repo_id = _repo_id(repo)
            provider = create_provider(cfg.vcs)
        except ValueError as e:
            rprint(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1)

    async def _reconcile() -> ReconciledContext:
        ctx = RepoContext()
        if provider is not None:
            ctx = await provider.load_context(repo_id)
        loader = None
        if provider is not None and prompt:
            loader = functools.partial(provider.fetch_previous_files, repo_id)
        reconciled = await reconcile_with_files(
            ContextReconciler(cfg.policy), prompt or "", ctx, previous_files=loader
        )
        if not prompt:
            reconciled = reconciled.model_copy(update={"plans": ()})
        return reconciled

    try:
        reconciled = asyncio.run(_reconcile())
        changeset = ChangeSetValidator(reconciled, cfg.pr).validate(result)
    except PromptShipError as e:
        rprint(f"[red]Invalid:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _display_changeset(changeset)
    rprint("[green]Valid.[/green]")


@app.command()
def context(
    repo: str = typer.Argument(..., help="GitHub URL or owner/repo"),
    prompt: Annotated[
        str | None, typer.Option("--prompt", "-p", help="Show the plan for this request")
    ] = None,
) -> None:
    """Show what promptship knows about a repository."""
    cfg = _get_config()
    try:
        repo_id = _repo_id(repo)
        provider = create_provider(cfg.vcs)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    try:
        ctx = asyncio.run(provider.load_context(repo_id))
        reconciled = ContextReconciler(cfg.policy).reconcile(prompt or "", ctx)
    except PromptShipError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _display_context(reconciled)
    if prompt:
        table = Table(title="Plan")
        table.add_column("Action", style="magenta")
        table.add_column("Kind")
        table.add_column("Identifier", style="cyan")
        table.add_column("Version", justify="right")
        for plan in reconciled.plans:
            table.add_row(
                plan.action, plan.kind.value, plan.identifier, plan.resolved_version or "-"
            )
        rprint(table)


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default promptship.yaml in current directory."""
    target = Path("promptship.yaml")
    if target.exists() and not force:
        rprint("[yellow]promptship.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
