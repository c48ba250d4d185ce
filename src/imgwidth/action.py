"""Run imgwidth against a pull request, as a GitHub Action or by hand."""

import json
from pathlib import Path

from .config import Config, ConfigurationError
from .github import GitHubClient, HostIOError, PullRequestRef
from .logging import error, info, warning
from .rewriter import RewriteResult, rewrite

PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})


def load_event(
    event_name: str | None, event_path: str | Path | None
) -> PullRequestRef | None:
    """Read the pull request a workflow run was triggered by.

    Args:
        event_name: Value of GITHUB_EVENT_NAME
        event_path: Value of GITHUB_EVENT_PATH (the webhook payload file)

    Returns:
        The pull request ref, or None when the event is not a pull request event

    Raises:
        ValueError: If the payload is missing or does not describe a pull request
    """
    if event_name not in PULL_REQUEST_EVENTS:
        return None
    if not event_path:
        raise ValueError("GITHUB_EVENT_PATH is not set")

    with open(event_path, "r", encoding="utf-8") as f:
        payload = json.load(f)

    try:
        number = payload["pull_request"]["number"]
        repository = payload["repository"]["full_name"]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Event payload has no pull request: missing {e}") from e

    return PullRequestRef.parse(repository, number)


def process_pull_request(
    client: GitHubClient, ref: PullRequestRef, width: int, dry_run: bool = False
) -> RewriteResult:
    """Rewrite image references in one pull request description.

    The description is only written back when something changed.

    Raises:
        HostIOError: If the description cannot be fetched or updated
    """
    info(f"Processing description of {ref} for images...")
    description = client.get_pull_request_body(ref)

    result = rewrite(description, width)
    for message in result.warnings:
        warning(message)

    if not result.found:
        info("No images found in pull request description.")
        return result
    info(f"Found {result.found} images in PR description.")

    if not result.changed:
        info("No images needed to be updated in the PR description")
        return result

    if dry_run:
        info(f"Dry run: would update description of {ref}")
        return result

    client.update_pull_request_body(ref, result.text)
    info(f"Successfully updated PR description with images at {width}px width")
    return result


def run_action(config: Config, env) -> int:
    """Entry point for a GitHub Actions step.

    Args:
        config: Loaded configuration (environment already applied)
        env: Environment mapping holding the runner's GITHUB_* variables

    Returns:
        Process exit code
    """
    try:
        ref = load_event(env.get("GITHUB_EVENT_NAME"), env.get("GITHUB_EVENT_PATH"))
    except (OSError, ValueError) as e:
        error(f"Could not read workflow event: {e}")
        return 1

    if ref is None:
        info("This action only works on pull requests.")
        return 0

    try:
        client = GitHubClient(
            config.require_token(),
            api_url=config.github.api_url,
            timeout=config.github.timeout,
        )
        process_pull_request(client, ref, config.rewrite.width)
    except (ConfigurationError, HostIOError) as e:
        error(str(e))
        return 1

    return 0
