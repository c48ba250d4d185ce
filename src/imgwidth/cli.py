"""Command-line interface for imgwidth."""

import os

import click

from .config import Config, ConfigurationError
from .logging import error, setup_logging


def _load_config(width: int | None, token: str | None = None) -> Config:
    try:
        config = Config.find_and_load()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    if width is not None:
        config.rewrite.width = width
    if token:
        config.token = token
    return config


@click.group()
@click.version_option(package_name="imgwidth")
def main():
    """imgwidth - Constrain image widths in pull request descriptions."""
    pass


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option("--width", "-w", type=click.IntRange(min=1), help="Target width in px")
@click.option(
    "--output",
    "-o",
    type=click.File("w", encoding="utf-8"),
    default="-",
    help="Write result here (default: stdout)",
)
@click.option("--check", is_flag=True, help="Exit 1 if the text would change")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def rewrite(source, width: int | None, output, check: bool, verbose: bool):
    """Rewrite image references in a file (or stdin)."""
    from .rewriter import rewrite as do_rewrite

    setup_logging(verbose=verbose)
    config = _load_config(width)

    result = do_rewrite(source.read(), config.rewrite.width)
    for message in result.warnings:
        click.echo(f"Warning: {message}", err=True)

    if check:
        if result.changed:
            click.echo("Images would be rewritten", err=True)
            raise SystemExit(1)
        return

    output.write(result.text)


@main.command()
@click.argument("repository")
@click.argument("number", type=click.IntRange(min=1))
@click.option("--width", "-w", type=click.IntRange(min=1), help="Target width in px")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token [env: GITHUB_TOKEN]")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show what would be done without updating"
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def pr(
    repository: str,
    number: int,
    width: int | None,
    token: str | None,
    dry_run: bool,
    verbose: bool,
):
    """Rewrite the description of pull request NUMBER in REPOSITORY (owner/repo)."""
    from .action import process_pull_request
    from .github import GitHubClient, HostIOError, PullRequestRef

    setup_logging(verbose=verbose)

    try:
        ref = PullRequestRef.parse(repository, number)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    config = _load_config(width, token)
    try:
        client = GitHubClient(
            config.require_token(),
            api_url=config.github.api_url,
            timeout=config.github.timeout,
        )
        result = process_pull_request(
            client, ref, config.rewrite.width, dry_run=dry_run
        )
    except (ConfigurationError, HostIOError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if dry_run and result.changed:
        click.echo(result.text)


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def action(verbose: bool):
    """Run as a GitHub Actions step (reads GITHUB_* and INPUT_* variables)."""
    from .action import run_action

    setup_logging(verbose=verbose, actions=os.environ.get("GITHUB_ACTIONS") == "true")
    try:
        config = Config.find_and_load()
    except ConfigurationError as e:
        error(str(e))
        raise SystemExit(1)
    raise SystemExit(run_action(config, os.environ))


if __name__ == "__main__":
    main()
