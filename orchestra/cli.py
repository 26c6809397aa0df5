"""Click CLI: loads config, builds providers, streams one orchestrated response."""

import asyncio
import logging
import sys
import uuid
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from orchestra.events import Complete, Error
from orchestra.healthcheck import run_health_checks
from orchestra.models import ChatMessage, ChatRequest
from orchestra.orchestrator import MODES, StreamOrchestrator
from orchestra.output import print_event, save_to_file
from orchestra.providers.base import AIProvider
from orchestra.providers.factory import build_all_providers

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


async def _run_request(
    orchestrator: StreamOrchestrator,
    request: ChatRequest,
    config: AppConfig,
) -> Complete | None:
    """Consume the event stream, rendering as it goes. Returns the final Complete, if any."""
    final: Complete | None = None
    async for event in orchestrator.stream(request):
        print_event(event, config, console)
        if isinstance(event, Complete):
            final = event
        elif isinstance(event, Error):
            logger.debug("Stream reported error: %s", event.message)
    return final


@click.command()
@click.argument("prompt")
@click.option("--mode", type=click.Choice(MODES), default=None, help="Response mode (default: from config)")
@click.option("--provider", "provider_id", default=None, help="Provider id to use in normal mode, or 'auto'")
@click.option("--session", "session_id", default=None, help="Session id for a2a mode (default: random)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--save", is_flag=True, default=False, help="Save the final response as markdown")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    prompt: str,
    mode: str | None,
    provider_id: str | None,
    session_id: str | None,
    output_path: str | None,
    save: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """AI Orchestra -- multi-provider chat: single model, mix of agents, or A2A debate.

    \b
    Examples:
      orchestra "Summarize the history of TCP"
      orchestra "Write a quicksort in Rust" --provider openai
      orchestra "Compare REST and GraphQL" --mode mix
      orchestra "Should we adopt a monorepo?" --mode a2a --save
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    effective_mode = mode or config.defaults.mode
    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    all_providers = build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    orchestrator = StreamOrchestrator.from_config(config, providers=all_providers)
    request = ChatRequest(
        messages=[ChatMessage("user", prompt)],
        user_prompt=prompt,
        mode=effective_mode,
        preferred_provider=provider_id,
        session_id=session_id or (uuid.uuid4().hex if effective_mode == "a2a" else None),
    )

    console.print(f"\n[bold cyan]AI Orchestra[/bold cyan] {escape(f'[{effective_mode}]')}")
    console.print(f"Providers: {', '.join(sorted(all_providers))}\n")

    final = asyncio.run(_run_request(orchestrator, request, config))
    if final is None:
        sys.exit(1)

    if save:
        saved_path = save_to_file(final.content, prompt, effective_mode, final.provider, effective_output)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")


if __name__ == "__main__":
    main()
