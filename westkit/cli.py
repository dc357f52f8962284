import click


@click.group()
@click.option(
    "--workspace",
    "-w",
    default=".",
    type=click.Path(file_okay=False, path_type=str),
    help="Workspace root (default: current directory).",
)
@click.option("--quiet", "-q", is_flag=True, default=False, help="Do not echo external tool output.")
@click.pass_context
def main(ctx: click.Context, workspace: str, quiet: bool) -> None:
    """westkit - Zephyr west workspace bootstrap and build orchestration."""
    ctx.ensure_object(dict)
    ctx.obj["workspace"] = workspace
    ctx.obj["quiet"] = quiet


# ---------------------------------------------------------------------------
# Plumbing
# ---------------------------------------------------------------------------


def _commands(ctx: click.Context):
    """Wire the command surface for the selected workspace."""
    from westkit.workflow.commands import WorkspaceCommands
    from westkit.workflow.execution.process import SubprocessRunner
    from westkit.workflow.log import setup_logging
    from westkit.workflow.prompts import ConsolePrompt
    from westkit.workflow.registry import WorkspaceRegistry
    from westkit.workflow.settings import get_settings
    from westkit.workflow.store.local import LocalWorkspaceStore

    settings = get_settings()
    setup_logging(settings.log_level)

    def echo_output(stream: str, line: str) -> None:
        click.echo(line, err=True)

    return WorkspaceCommands(
        ctx.obj["workspace"],
        settings=settings,
        registry=WorkspaceRegistry(LocalWorkspaceStore(settings.data_root, settings.data_prefix)),
        runner=SubprocessRunner(default_timeout=settings.process_timeout),
        prompt=ConsolePrompt(),
        on_output=None if ctx.obj["quiet"] else echo_output,
    )


def _run(ctx: click.Context, call) -> None:
    """Run one async command, print its result, and exit with its status."""
    import asyncio

    result = asyncio.run(call(_commands(ctx)))

    if result.ok:
        click.echo(result.message)
    elif result.cancelled:
        click.echo(f"Cancelled: {result.message}")
    else:
        if result.output and ctx.obj["quiet"]:
            click.echo(result.output, err=True)
        click.echo(f"Error: {result.message}", err=True)
    ctx.exit(0 if result.ok or result.cancelled else 1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command("check-dependencies")
@click.pass_context
def check_dependencies(ctx: click.Context) -> None:
    """Probe host tools (cmake, ninja, dtc, git, west)."""

    async def call(commands):
        result = await commands.check_dependencies()
        for tool in result.data.get("tools", []):
            mark = "ok" if tool["found"] else "MISSING"
            click.echo(f"  {tool['name']:<10} {mark:<8} {tool['version'] or ''}")
        return result

    _run(ctx, call)


@main.command()
@click.pass_context
def setup(ctx: click.Context) -> None:
    """Standard setup: generate a manifest, then sync, create venv, install packages."""
    _run(ctx, lambda commands: commands.setup_standard())


@main.command("setup-git")
@click.option("--url", default=None, help="West manifest repository URL (prompted when omitted).")
@click.pass_context
def setup_git(ctx: click.Context, url: str | None) -> None:
    """Setup from a remote manifest repository (west init -m URL)."""
    _run(ctx, lambda commands: commands.setup_from_remote_manifest(url))


@main.command("install-sdk")
@click.pass_context
def install_sdk(ctx: click.Context) -> None:
    """Install the Zephyr SDK (all or selected toolchains)."""
    _run(ctx, lambda commands: commands.install_sdk())


@main.command("create-project")
@click.pass_context
def create_project(ctx: click.Context) -> None:
    """Create a project from a built-in template."""
    _run(ctx, lambda commands: commands.create_project())


@main.command("add-project")
@click.pass_context
def add_project(ctx: click.Context) -> None:
    """Register an existing Zephyr application folder."""
    _run(ctx, lambda commands: commands.add_project())


@main.command("add-build")
@click.option("--project", "project_id", default=None, help="Project id (default: active project).")
@click.pass_context
def add_build(ctx: click.Context, project_id: str | None) -> None:
    """Add a build configuration (board + optimization profile) to a project."""
    _run(ctx, lambda commands: commands.add_build(project_id))


@main.command()
@click.argument("build_id", required=False)
@click.pass_context
def build(ctx: click.Context, build_id: str | None) -> None:
    """Build BUILD_ID (default: the active build configuration)."""
    _run(ctx, lambda commands: commands.build(build_id))


@main.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full workspace state as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show setup progress, projects and build configurations."""

    async def call(commands):
        result = await commands.status()
        if not result.ok:
            return result
        if as_json:
            import json

            click.echo(json.dumps(result.data["state"], indent=2))
            return result

        state = result.data["state"]
        click.echo(f"Stage:    {result.data['stage']}")
        click.echo(f"Projects: {', '.join(sorted(state['projects'])) or '-'}")
        click.echo(f"Builds:   {', '.join(sorted(state['buildConfigurations'])) or '-'}")
        return result

    _run(ctx, call)


@main.command()
@click.option(
    "--stage",
    default="packages_ready",
    type=click.Choice(
        ["manifest_created", "dependencies_synced", "environment_ready", "packages_ready"], case_sensitive=False
    ),
    help="Stage to wait for (default: packages_ready).",
)
@click.option("--interval", default=3.0, type=float, help="Seconds between checks.")
@click.option("--timeout", default=None, type=float, help="Give up after this many seconds.")
@click.pass_context
def wait(ctx: click.Context, stage: str, interval: float, timeout: float | None) -> None:
    """Block until another westkit process has brought the workspace to STAGE."""

    async def call(commands):
        return await commands.wait(
            stage.lower(),
            interval=interval,
            timeout=timeout,
            on_progress=lambda current: click.echo(f"Workspace at '{current}'"),
        )

    _run(ctx, call)


if __name__ == "__main__":
    main()
