"""Click CLI — loads config, builds the roster and providers, runs a conversation."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from roundtable.conversation import run_conversation
from roundtable.flow import FlowController
from roundtable.models import Participant
from roundtable.output import print_flow_statistics, print_message, save_transcript
from roundtable.providers.base import AIProvider
from roundtable.providers.registry import build_providers
from roundtable.topic import parse_topic_file, participant_names

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_roster(config: AppConfig, names: list[str]) -> list[Participant]:
    """Turn roster names into participants, in the given order.

    Raises:
        click.BadParameter: If a name is not a configured participant.
    """
    unknown = [n for n in names if n not in config.participants]
    if unknown:
        raise click.BadParameter(
            f"Unknown participant(s): {', '.join(unknown)}. "
            f"Configured: {', '.join(sorted(config.participants))}",
            param_hint="--participants",
        )
    roster: list[Participant] = []
    for name in names:
        p_cfg = config.participants[name]
        model_cfg = config.models[p_cfg.model]
        roster.append(
            Participant(
                id=name.lower(),
                display_name=name,
                model_identifier=model_cfg.model,
                provider_name=p_cfg.model,
                system_instruction=p_cfg.system_instruction,
            )
        )
    return roster


def _playable(roster: list[Participant], providers: dict[str, AIProvider]) -> list[Participant]:
    """Drop participants whose model could not be built."""
    playable = [p for p in roster if p.provider_name in providers]
    for p in roster:
        if p not in playable:
            logger.warning("Participant %s dropped: model '%s' unavailable", p.display_name, p.provider_name)
    return playable


@click.command()
@click.argument("topic", required=False)
@click.option("--file", "topic_file", type=click.Path(exists=True), help="Read topic from .md file")
@click.option("--participants", default=None, help="Comma-separated roster names (default: from config)")
@click.option("--messages", default=None, type=int, help="Number of messages to generate (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--stats/--no-stats", default=True, help="Print flow statistics at the end")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic: str | None,
    topic_file: str | None,
    participants: str | None,
    messages: int | None,
    output_path: str | None,
    stats: bool,
    verbose: bool,
) -> None:
    """AI Roundtable -- multi-agent conversation with @mention-aware turn-taking.

    \b
    Examples:
      python -m roundtable.cli "Is remote work here to stay?"
      python -m roundtable.cli "Tabs or spaces?" --participants Ada,Linus --messages 6
      python -m roundtable.cli --file topic.md --no-stats
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model output with
    # Unicode chars doesn't crash the ANSI render path.
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
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    meta: dict = {}
    slug_override: str | None = None
    if topic_file:
        topic_text, meta = parse_topic_file(Path(topic_file))
        slug_override = Path(topic_file).stem
    elif topic:
        topic_text = topic
    else:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument or --file.")
        sys.exit(1)

    # CLI flags always win; frontmatter only fills in when a flag is not set
    names = (
        participant_names(participants)
        or participant_names(meta.get("participants"))
        or config.defaults.participants
    )
    # 0 counts as unset at every level
    effective_messages = (
        messages
        or int(meta.get("messages") or 0)
        or config.defaults.max_messages
    )
    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    roster = _build_roster(config, names)
    providers = build_providers(config, {p.provider_name for p in roster})
    roster = _playable(roster, providers)

    if len(roster) < 2:
        console.print(
            f"[bold red]Error:[/bold red] Need at least 2 participants with working models, got {len(roster)}. "
            "Check API keys in .env or adjust --participants."
        )
        sys.exit(1)

    console.print(f"\n[bold cyan]AI Roundtable[/bold cyan] — {len(roster)} participants, {effective_messages} messages")
    console.print(f"Participants: {', '.join(p.display_name for p in roster)}")
    console.print(f"Topic: [italic]{topic_text[:80]}{'...' if len(topic_text) > 80 else ''}[/italic]\n")

    controller = FlowController(settings=config.flow)
    try:
        result = asyncio.run(
            run_conversation(
                topic=topic_text,
                participants=roster,
                providers=providers,
                controller=controller,
                prompts=config.prompts,
                max_messages=effective_messages,
                on_message=print_message,
            )
        )
    except RuntimeError as exc:
        console.print(f"[bold red]Conversation failed:[/bold red] {exc}")
        sys.exit(1)

    if stats and result.statistics is not None:
        print_flow_statistics(result.statistics)

    saved_path = save_transcript(result, effective_output, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")


if __name__ == "__main__":
    main()
