"""CLI interface for Sitestage.

Command-line tool for building, serving and publishing the blog.
"""

import logging
import sys
from collections.abc import Callable
from pathlib import Path

import click

from sitestage.config import Config
from sitestage.core.toolchain import ContainerRunner, create_runner

CONFIG_OPTION_HELP = "Path to configuration file (default: auto-discover sitestage.toml)"


def config_option(func: Callable[..., None]) -> Callable[..., None]:
    return click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(exists=True, path_type=Path, dir_okay=False),
        default=None,
        help=CONFIG_OPTION_HELP,
    )(func)


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output (log every resolved request)",
)
def cli(verbose: bool) -> None:
    """Sitestage - build, serve and publish a static blog."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@config_option
@click.option("--drafts", is_flag=True, help="Render drafts too")
@click.option(
    "--container/--no-container",
    default=None,
    help="Run the site builder inside the toolchain image (overrides config)",
)
def build(config_path: Path | None, drafts: bool, container: bool | None) -> None:
    """Build the site and make the new build current."""
    config = _load_config(config_path).with_overrides(container_enabled=container)
    _run_build(config, drafts=drafts)


@cli.command()
@config_option
@click.option("--host", default=None, help="Host to bind to (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="Port to bind to (overrides config)")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Built site directory to serve (overrides config)",
)
@click.option(
    "--build/--no-build",
    "build_first",
    default=False,
    help="Build the site before serving (default: disabled)",
)
@click.option("--drafts", is_flag=True, help="Render drafts when building")
@click.option(
    "--live-reload/--no-live-reload",
    default=None,
    help="Rebuild and reload browsers on content changes (overrides config)",
)
def serve(
    config_path: Path | None,
    host: str | None,
    port: int | None,
    output_dir: Path | None,
    build_first: bool,
    drafts: bool,
    live_reload: bool | None,
) -> None:
    """Serve the current build."""
    from sitestage.server import run_server

    config = _load_config(config_path).with_overrides(
        host=host,
        port=port,
        output_dir=output_dir,
        live_reload_enabled=live_reload,
    )

    if build_first:
        _run_build(config, drafts=drafts)

    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo(f"Serving: {config.site.output_dir}")
    if config.live_reload.enabled:
        click.echo("Live reload: enabled")
    else:
        click.echo("Live reload: disabled")

    run_server(config)


@cli.command(name="resolve")
@click.argument("path")
@config_option
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Built site directory (overrides config)",
)
def resolve_command(path: str, config_path: Path | None, output_dir: Path | None) -> None:
    """Show which file a request path is served from."""
    from sitestage.core.resolver import Matched, resolve

    config = _load_config(config_path).with_overrides(output_dir=output_dir)
    result = resolve(path, config.site.output_dir)

    if isinstance(result, Matched):
        click.echo(f"{path} -> {result.path} [{result.rule.value}, {result.content_type}]")
    else:
        click.echo(
            click.style(f"{path} -> fallback page (no matching file)", fg="yellow"),
        )


@cli.command()
@config_option
def check(config_path: Path | None) -> None:
    """Report published posts that are missing from the current build."""
    from sitestage.core.content import ContentCorpus, check_routes

    config = _load_config(config_path)
    corpus = ContentCorpus(
        config.site.source_dir,
        posts_dir=config.site.posts_dir,
        drafts_dir=config.site.drafts_dir,
    )
    broken = check_routes(corpus, config.site.output_dir, config.site.permalink)

    if not broken:
        click.echo(click.style("All published routes resolve.", fg="green"))
        return

    click.echo(
        click.style(f"{len(broken)} route(s) fall back to the index page:", fg="red"),
        err=True,
    )
    for item in broken:
        click.echo(f"  - {item.route} ({item.document.source_path})", err=True)
    sys.exit(1)


@cli.command(name="build-container")
@config_option
def build_container(config_path: Path | None) -> None:
    """Build the toolchain image."""
    config = _load_config(config_path)
    sys.exit(_container(config).build_image())


@cli.command(name="run-container")
@config_option
@click.option("--port", "-p", type=int, default=None, help="Port to publish (default: server port)")
def run_container(config_path: Path | None, port: int | None) -> None:
    """Open a shell in the toolchain image with the project mounted."""
    config = _load_config(config_path)
    sys.exit(_container(config).run_shell(port if port is not None else config.server.port))


@cli.command()
@config_option
@click.option(
    "--build/--no-build",
    "build_first",
    default=True,
    help="Build the site before publishing (default: enabled)",
)
def deploy(config_path: Path | None, build_first: bool) -> None:
    """Build, commit and push the site to every deploy remote."""
    from sitestage.core.builder import create_builder, stage_paths
    from sitestage.core.toolchain import deploy as deploy_site

    config = _load_config(config_path)
    if build_first:
        _run_build(config)

    code = deploy_site(create_runner(config), config.deploy, stage_paths(create_builder(config)))
    if code != 0:
        click.echo(click.style(f"Error: deploy failed with exit code {code}", fg="red"), err=True)
        sys.exit(code)

    remotes = ", ".join(config.deploy.remotes)
    click.echo(click.style(f"Deployed to {remotes}", fg="green"))


@cli.command()
@config_option
def clean(config_path: Path | None) -> None:
    """Remove dangling images and stopped containers."""
    from sitestage.core.toolchain import clean as clean_docker

    config = _load_config(config_path)
    sys.exit(clean_docker(create_runner(config)))


def _load_config(config_path: Path | None) -> Config:
    """Load configuration or exit with an error.

    Args:
        config_path: Explicit config file, or None to auto-discover

    Returns:
        Loaded configuration

    Raises:
        SystemExit: If the configuration is missing or invalid
    """
    try:
        return Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


def _run_build(config: Config, *, drafts: bool = False) -> None:
    """Build the site or exit with the builder's exit code.

    The toolchain image is built first when the container is enabled.

    Args:
        config: Application configuration
        drafts: Render drafts too
    """
    from sitestage.core.builder import BuildError, create_builder

    if config.container.enabled:
        code = _container(config).build_image()
        if code != 0:
            click.echo(
                click.style(f"Error: toolchain image build failed with exit code {code}", fg="red"),
                err=True,
            )
            sys.exit(code)

    builder = create_builder(config)
    click.echo(f"Building {config.site.source_dir} -> {config.site.builds_dir}")
    try:
        result = builder.build(drafts=drafts)
    except BuildError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(e.returncode)

    click.echo(click.style(f"Build {result.build_id} is current", fg="green"))
    click.echo(f"Digest: {result.digest}")
    for pruned in result.pruned:
        click.echo(f"  pruned {pruned.name}")


def _container(config: Config) -> ContainerRunner:
    return ContainerRunner(config.container, config.project_dir, create_runner(config))


if __name__ == "__main__":
    cli()
