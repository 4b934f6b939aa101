"""Click CLI with mod removal, pack and project listing, and info subcommands."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path

import click

from mcdex import __version__
from mcdex.analysis import analyze_removal, remove_mods
from mcdex.console import (
    format_pack_listing,
    format_project_listing,
    format_removal_report,
    format_timestamp,
)
from mcdex.database import Database
from mcdex.env import McdexEnv
from mcdex.errors import McdexError
from mcdex.modpack import ModPack
from mcdex.models import ProjectType, RemovalMode


@dataclass
class CliState:
    env: McdexEnv
    dry_run: bool = False


pass_state = click.make_pass_decorator(CliState)


@click.group()
@click.version_option(version=__version__)
@click.option("-n", "--dry-run", is_flag=True, help="Dry run; don't save any changes to manifest")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging of operations")
@click.option(
    "--mcdir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Minecraft home folder to use",
)
@click.pass_context
def cli(ctx: click.Context, dry_run: bool, verbose: bool, mcdir: Path | None):
    """mcdex: maintain Minecraft modpacks from the command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    ctx.obj = CliState(env=McdexEnv(minecraft_dir=mcdir), dry_run=dry_run)
    if dry_run:
        click.echo("--- DRY RUN ---")


def _remove(state: CliState, pack_name: str, mod_names: tuple[str, ...], mode: RemovalMode) -> None:
    try:
        with ModPack.open(pack_name, state.env) as pack, Database.open(state.env.database_path) as db:
            info = analyze_removal(pack, db, mod_names, mode)
            for line in format_removal_report(info, mode):
                click.echo(line)
            click.echo()
            removed = remove_mods(pack, info.removal_set(mode.recursive), dry_run=state.dry_run)
    except McdexError as e:
        raise click.ClickException(str(e))

    if removed:
        click.echo(f"Removed {removed} mod(s) from {pack_name}")


@cli.command("mod.remove.single")
@click.argument("pack")
@click.argument("mod_names", nargs=-1, required=True)
@pass_state
def mod_remove_single(state: CliState, pack: str, mod_names: tuple[str, ...]):
    """Remove individual mods from a pack, without handling dependencies."""
    _remove(state, pack, mod_names, RemovalMode.SINGLE)


@cli.command("mod.remove.recursive")
@click.argument("pack")
@click.argument("mod_names", nargs=-1, required=True)
@pass_state
def mod_remove_recursive(state: CliState, pack: str, mod_names: tuple[str, ...]):
    """Remove mods along with every mod depending on them and orphaned dependencies."""
    _remove(state, pack, mod_names, RemovalMode.RECURSIVE)


@cli.command("pack.show")
@click.argument("pack")
@pass_state
def pack_show(state: CliState, pack: str):
    """List all mods included in an installed pack."""
    try:
        with ModPack.open(pack, state.env) as cp, Database.open(state.env.database_path) as db:
            rows = []
            for entry in cp.list_installed_files():
                project = db.get_project(entry.project_id)
                if project is not None:
                    entry = dataclasses.replace(entry, name=project.name)
                rows.append((entry, project, db.get_file(entry.file_id)))
    except McdexError as e:
        raise click.ClickException(str(e))

    for line in format_pack_listing(rows):
        click.echo(line)


def _list_projects(state: CliState, project_type: ProjectType, name: str, mc_version: str) -> None:
    try:
        with Database.open(state.env.database_path) as db:
            projects = db.list_projects(name, mc_version, project_type)
    except McdexError as e:
        raise click.ClickException(str(e))
    for line in format_project_listing(projects):
        click.echo(line)


def _list_latest(state: CliState, project_type: ProjectType, mc_version: str) -> None:
    try:
        with Database.open(state.env.database_path) as db:
            projects = db.list_latest_projects(project_type, mc_version)
    except McdexError as e:
        raise click.ClickException(str(e))
    for line in format_project_listing(projects):
        click.echo(line)


@cli.command("mod.list")
@click.argument("name", required=False, default="")
@click.argument("mc_version", required=False, default="")
@pass_state
def mod_list(state: CliState, name: str, mc_version: str):
    """List mods matching a name and Minecraft version."""
    _list_projects(state, ProjectType.MOD, name, mc_version)


@cli.command("mod.list.latest")
@click.argument("mc_version", required=False, default="")
@pass_state
def mod_list_latest(state: CliState, mc_version: str):
    """List most recently updated mods."""
    _list_latest(state, ProjectType.MOD, mc_version)


@cli.command("pack.list")
@click.argument("name", required=False, default="")
@click.argument("mc_version", required=False, default="")
@pass_state
def pack_list(state: CliState, name: str, mc_version: str):
    """List available mod packs."""
    _list_projects(state, ProjectType.MODPACK, name, mc_version)


@cli.command("pack.list.latest")
@click.argument("mc_version", required=False, default="")
@pass_state
def pack_list_latest(state: CliState, mc_version: str):
    """List most recently updated mod packs."""
    _list_latest(state, ProjectType.MODPACK, mc_version)


@cli.command()
@pass_state
def info(state: CliState):
    """Show runtime info."""
    env = state.env
    db_status = "present" if env.database_path.exists() else "missing"
    click.echo(f"Version: {__version__}")
    click.echo("Environment:")
    click.echo(f"* Minecraft dir: {env.minecraft_dir}")
    click.echo(f"* mcdex dir: {env.mcdex_dir}")
    click.echo(f"* Database: {env.database_path} ({db_status})")
    if db_status == "present":
        try:
            with Database.open(env.database_path) as db:
                tstamp = db.latest_file_timestamp()
        except McdexError as e:
            raise click.ClickException(str(e))
        if tstamp:
            click.echo(f"* Database up-to-date as of {format_timestamp(tstamp)}")


if __name__ == "__main__":
    cli()
