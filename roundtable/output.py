"""Rich console output and markdown transcript save for conversations."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from roundtable.models import ConversationResult, FlowStatistics, Message

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def print_message(message: Message) -> None:
    """Print one conversation message as a panel."""
    title = f"[bold]{message.sender_name}[/bold]"
    if message.model:
        title += f" ({message.model})"
    console.print(
        Panel(
            Markdown(message.content),
            title=title,
            subtitle=f"{message.latency_sec:.1f}s",
            border_style="dim",
        )
    )


def print_flow_statistics(stats: FlowStatistics) -> None:
    """Print turn counts and mention chains as tables."""
    console.print(Rule("[bold cyan]Flow Statistics[/bold cyan]"))
    console.print(
        f"Participants: {stats.participant_count} | "
        f"Last speaker: {stats.last_speaker or '-'} | "
        f"Max chain: {stats.max_mention_chain} | "
        f"Cooldown: {stats.mention_cooldown_ms / 1000:.0f}s"
    )

    turns = Table(title="Consecutive turns")
    turns.add_column("Participant")
    turns.add_column("Turns", justify="right")
    turns.add_column("Last mentioned by")
    for name, count in stats.consecutive_turns.items():
        record = stats.recent_mentions.get(name)
        turns.add_row(name, str(count), record.mentioned_by if record else "")
    console.print(turns)

    if stats.mention_chains:
        chains = Table(title="Mention chains")
        chains.add_column("From")
        chains.add_column("To")
        chains.add_column("Count", justify="right")
        for (mentioner, mentioned), count in sorted(stats.mention_chains.items()):
            chains.add_row(mentioner, mentioned, str(count))
        console.print(chains)


def save_transcript(
    result: ConversationResult,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the conversation transcript as a markdown file.

    Args:
        result: The completed ConversationResult.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(result.topic)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    roster = ", ".join(
        f"{p.display_name} ({p.model_identifier})" if p.model_identifier else p.display_name
        for p in result.participants
    )

    lines: list[str] = [
        f"# AI Roundtable: {result.topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Participants:** {roster}",
        f"**Messages:** {len(result.messages)}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        "",
        "---",
        "",
    ]

    for i, msg in enumerate(result.messages, start=1):
        heading = f"### {i}. {msg.sender_name}"
        if msg.model:
            heading += f" ({msg.model})"
        lines += [heading, "", msg.content, ""]

    stats = result.statistics
    if stats is not None:
        lines += ["## Flow Statistics", ""]
        lines.append(f"- Last speaker: {stats.last_speaker or '-'}")
        for name, count in stats.consecutive_turns.items():
            lines.append(f"- {name}: {count} consecutive turn(s)")
        for (mentioner, mentioned), count in sorted(stats.mention_chains.items()):
            lines.append(f"- Chain {mentioner} -> {mentioned}: {count}")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
