"""
CLI interface for upgrader.

Provides commands to initialize configuration, inspect registered upgrade
steps and stored versions, preview the pending plan, and run one upgrade
cycle.

Upgrade steps come from installed plugins (the configured entry point
group) and from the modules listed under step_modules in config.yaml.
"""


import json

import click

from upgrader import __version__
from upgrader.errors import UpgraderError


def _build_registry(config):
    from upgrader.registry import UpgradeRegistry

    registry = UpgradeRegistry()
    registry.load_entry_points(config.entry_point_group)
    registry.load_modules(config.step_modules)
    return registry


def _build_store(config, registry):
    from upgrader.store import CompositeModelVersionStore, FileModelVersionStore

    store = FileModelVersionStore(config.version_path)
    if config.local_version_path is not None:
        store = CompositeModelVersionStore(
            local=FileModelVersionStore(config.local_version_path),
            cluster=store,
            local_models=registry.get_local_models(),
        )
    return store


def _require_config(ctx):
    if "config" not in ctx.obj:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        click.echo("Run 'upgrader init' to create a configuration file.", err=True)
        raise SystemExit(1)
    return ctx.obj["config"]


@click.group()
@click.version_option(version=__version__, prog_name="upgrader")
@click.pass_context
def main(ctx):
    """
    upgrader - Versioned model upgrade orchestrator.

    Plans and applies model upgrades with checkpoint/rollback semantics.
    """
    from upgrader.config import load_config

    ctx.ensure_object(dict)
    if "config" in ctx.obj:
        return
    try:
        ctx.obj["config"] = load_config()
    except Exception as e:
        # Commands that need config report this; init does not
        ctx.obj["config_error"] = str(e)


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize upgrader configuration."""
    import yaml

    from upgrader.config import default_config_dict, get_upgrader_home

    home = get_upgrader_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    cfg_path.write_text(yaml.safe_dump(default_config_dict(home), sort_keys=False))

    env_path = home / ".env"
    if not env_path.exists():
        env_path.write_text("# UPGRADER_DATA_DIR=...\n# UPGRADER_LOG_LEVEL=...\n")

    click.echo(f"Initialized upgrader config at {cfg_path}")


@main.command("steps")
@click.pass_context
def list_steps(ctx):
    """List registered models and upgrade steps."""
    config = _require_config(ctx)
    try:
        registry = _build_registry(config)
    except UpgraderError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)

    models = registry.models()
    if not models:
        click.echo("No models registered.")
        return

    for model in models:
        scope = "local" if model.local else "cluster"
        click.echo(f"{model.key} ({scope}, latest {registry.latest_version(model.key)}):")
        for step in registry.steps(model.key):
            suffix = f"  {step.description}" if step.description else ""
            click.echo(f"  {step.from_version} -> {step.to_version}{suffix}")


@main.command("versions")
@click.pass_context
def show_versions(ctx):
    """Show stored model versions next to the latest known versions."""
    from upgrader.utils import console, versions_table

    config = _require_config(ctx)
    try:
        registry = _build_registry(config)
        store = _build_store(config, registry)
        store.start()
        try:
            stored = store.load()
        finally:
            store.stop()
    except UpgraderError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)

    console.print(versions_table(stored, registry.latest_versions(), registry.get_local_models()))


@main.command("plan")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
@click.pass_context
def show_plan(ctx, as_json: bool):
    """
    Show pending upgrades without applying them.

    Example:

        upgrader plan --json
    """
    from upgrader.service import UpgradeService
    from upgrader.topology import detect_topology
    from upgrader.utils import console, plan_table

    config = _require_config(ctx)
    try:
        registry = _build_registry(config)
        store = _build_store(config, registry)
        topology = detect_topology(store, config.clustered, config.fresh_cluster)
        plan = UpgradeService(registry, store, topology).pending()
    except UpgraderError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps(plan.to_dict(), indent=2))
        return

    if not plan:
        click.echo("✓ All models are up to date")
        return
    if topology.is_fresh_node():
        click.echo("Fresh node: these upgrades will be recorded as inventory, not executed.")
    console.print(plan_table(plan))


@main.command("run")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def run(ctx, as_json: bool):
    """
    Run one upgrade cycle.

    Loads stored versions, applies pending upgrades (or records an
    inventory on a fresh node) and saves the new versions.

    Examples:

        upgrader run

        upgrader run --json
    """
    from upgrader.service import UpgradeService
    from upgrader.topology import detect_topology
    from upgrader.utils import print_report, setup_logging

    config = _require_config(ctx)
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_path,
    )

    try:
        registry = _build_registry(config)
        store = _build_store(config, registry)
        topology = detect_topology(store, config.clustered, config.fresh_cluster)
        service = UpgradeService(registry, store, topology)
        try:
            report = service.start()
        finally:
            service.stop()
    except UpgraderError as e:
        click.echo(f"✗ Upgrade failed: {e}", err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)


if __name__ == "__main__":
    main()
