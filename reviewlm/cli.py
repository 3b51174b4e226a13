"""
reviewlm.cli — Command-line interface for the acquisition engine.

Usage:
    reviewlm review PROMPT_FILE           Acquire a JSON review payload
    reviewlm discuss PROMPT_FILE          Acquire a free-form discussion reply
    reviewlm config                       Show the resolved runtime configuration
    reviewlm fingerprint FILE...          Hash a stable prompt prefix
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from reviewlm import __version__
from reviewlm.core.errors import AcquisitionError
from reviewlm.core.models import PromptSegments, Provider, ReviewMode

console = Console()


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _get_config(provider: str | None = None, model: str = "", thinking: bool | None = None):
    from reviewlm.core.config import RuntimeConfig

    overrides: dict = {}
    if provider:
        overrides["provider"] = Provider(provider)
    if thinking is not None:
        overrides["thinking_enabled"] = thinking
    config = RuntimeConfig.from_env(**overrides)
    if model:
        field = "openai_model" if config.provider is Provider.OPENAI else "anthropic_model"
        config = config.model_copy(update={field: model})
    return config


async def _run(config, mode: ReviewMode, prompt: str | PromptSegments):
    from reviewlm.acquisition.dispatcher import build_request, resolve

    binding = resolve(config, mode)
    try:
        engine = binding.engine(config)
        return await engine.acquire_with_usage(build_request(config, mode, prompt))
    finally:
        await binding.close()


def _mask(secret: str) -> str:
    if not secret:
        return "[red]not set[/red]"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}…{secret[-4:]}"


def _acquire_and_print(config, mode: ReviewMode, prompt: str | PromptSegments, show_usage: bool) -> None:
    try:
        content, usage = asyncio.run(_run(config, mode, prompt))
    except AcquisitionError as exc:
        console.print(f"[red]✗[/red] {escape(f'[{exc.code}] {exc.message}')}")
        sys.exit(1)

    click.echo(content)
    if show_usage:
        console.print(f"[dim]{usage.format_summary()}[/dim]")


_provider_option = click.option(
    "--provider",
    type=click.Choice([p.value for p in Provider], case_sensitive=False),
    default=None,
    help="Provider override (default: LLM_PROVIDER).",
)
_model_option = click.option("--model", default="", help="Model override (uses provider default if empty).")
_thinking_option = click.option(
    "--thinking/--no-thinking", default=None, help="Override THINKING_ENABLED."
)
_usage_option = click.option("--usage", "show_usage", is_flag=True, help="Print token usage afterwards.")


@click.group()
@click.version_option(__version__, prog_name="reviewlm")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """reviewlm — language-model response acquisition for PR reviews."""
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# review
# ---------------------------------------------------------------------------

@main.command()
@click.argument("prompt_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_provider_option
@_model_option
@_thinking_option
@_usage_option
def review(prompt_file: Path, provider: str | None, model: str, thinking: bool | None, show_usage: bool) -> None:
    """Acquire a line-comment review payload (canonical JSON)."""
    config = _get_config(provider, model, thinking)
    prompt = prompt_file.read_text(encoding="utf-8")
    _acquire_and_print(config, ReviewMode.LINE_COMMENTS, prompt, show_usage)


# ---------------------------------------------------------------------------
# discuss
# ---------------------------------------------------------------------------

@main.command()
@click.argument("prompt_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-s", "--stable",
    "stable_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Cacheable prefix file; repeat to add segments in order.",
)
@_provider_option
@_model_option
@_thinking_option
@_usage_option
def discuss(
    prompt_file: Path,
    stable_files: tuple[Path, ...],
    provider: str | None,
    model: str,
    thinking: bool | None,
    show_usage: bool,
) -> None:
    """Acquire a free-form discussion reply."""
    config = _get_config(provider, model, thinking)
    dynamic = prompt_file.read_text(encoding="utf-8")
    prompt: str | PromptSegments = dynamic
    if stable_files:
        prompt = PromptSegments(
            stable_parts=tuple(p.read_text(encoding="utf-8") for p in stable_files),
            dynamic_parts=(dynamic,),
        )
    _acquire_and_print(config, ReviewMode.DISCUSSION, prompt, show_usage)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

@main.command("config")
def show_config() -> None:
    """Show the runtime configuration resolved from the environment."""
    config = _get_config()

    table = Table(title="reviewlm Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Provider", f"[cyan]{config.provider.value}[/cyan]")
    table.add_row("Model", config.model_for(config.provider))
    table.add_row("Thinking", str(config.thinking_enabled))
    table.add_row("Anthropic API key", _mask(config.anthropic_api_key))
    table.add_row("Anthropic extended context", str(config.anthropic_extended_context))
    table.add_row("OpenAI API key", _mask(config.openai_api_key))
    table.add_row("OpenAI structured output", config.openai_structured_output)
    table.add_row("OpenAI max prompt chars", f"{config.openai_max_prompt_chars:,}")
    table.add_row("Prompt cache", str(config.prompt_cache_enabled))
    table.add_row("Transport attempts", str(config.transport_max_attempts))
    console.print(table)


# ---------------------------------------------------------------------------
# fingerprint
# ---------------------------------------------------------------------------

@main.command()
@click.argument(
    "stable_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--model", default=None, help="Model id folded into the hash.")
@click.option("--length", default=16, type=click.Choice(["8", "16"]), help="Hex digits to keep.")
def fingerprint(stable_files: tuple[Path, ...], model: str | None, length: str) -> None:
    """Hash the stable prompt prefix made of STABLE_FILES, in order."""
    from reviewlm.core.fingerprint import compute_segments_prefix_hash

    parts = [p.read_text(encoding="utf-8") for p in stable_files]
    click.echo(compute_segments_prefix_hash(parts, model, length=int(length)))


if __name__ == "__main__":
    main()
