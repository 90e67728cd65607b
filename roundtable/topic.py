"""Topic files: markdown body with optional YAML frontmatter."""

from pathlib import Path

import frontmatter


def parse_topic_file(file_path: Path) -> tuple[str, dict]:
    """Parse a topic markdown file with optional YAML frontmatter.

    Returns:
        (topic, metadata) where topic is the body text and metadata may hold
        participants (comma-separated str or list) and messages (int).
        If no frontmatter, metadata is {}.

    Raises:
        ValueError: If the body is empty.
    """
    post = frontmatter.load(str(file_path))
    topic = post.content.strip()
    if not topic:
        raise ValueError(f"Topic file has no body: {file_path}")
    return topic, dict(post.metadata)


def participant_names(value: str | list | None) -> list[str] | None:
    """Normalize a participants setting ("a, b" or ["a", "b"]) to a list of names."""
    if value is None:
        return None
    if isinstance(value, str):
        names = value.split(",")
    else:
        names = [str(v) for v in value]
    return [n.strip() for n in names if n.strip()]
