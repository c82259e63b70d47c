"""Inbox of topic files: frontmatter parsing, scanning and archiving."""

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import frontmatter


@dataclass
class TopicRequest:
    topic: str
    source: Path
    agents: list[str] = field(default_factory=list)
    arbiter: str | None = None
    max_rounds: int | None = None
    threshold: float | None = None


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def load_topic(file_path: Path) -> TopicRequest:
    """Read a topic file with optional YAML frontmatter.

    Recognized keys: agents (comma-separated string or list), arbiter,
    max_rounds, threshold. Unknown keys are ignored.

    Raises:
        ValueError: If the body is empty or a value has the wrong type.
    """
    post = frontmatter.load(str(file_path))
    topic = post.content.strip()
    if not topic:
        raise ValueError(f"Topic file is empty: {file_path}")

    meta = post.metadata
    agents = meta.get("agents", [])
    if isinstance(agents, str):
        agents = [a.strip() for a in agents.split(",") if a.strip()]

    max_rounds = int(meta["max_rounds"]) if "max_rounds" in meta else None
    if max_rounds is not None and max_rounds < 1:
        raise ValueError(f"{file_path.name}: max_rounds must be >= 1, got {max_rounds}")
    threshold = float(meta["threshold"]) if "threshold" in meta else None
    if threshold is not None and not 0.0 <= threshold <= 1.0:
        raise ValueError(f"{file_path.name}: threshold must be within [0, 1], got {threshold}")

    return TopicRequest(
        topic=topic,
        source=file_path,
        agents=[str(a) for a in agents],
        arbiter=str(meta["arbiter"]) if meta.get("arbiter") else None,
        max_rounds=max_rounds,
        threshold=threshold,
    )


def archive_topic(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move a processed topic file into archive_dir with a timestamp prefix.

    Failed topics get a FAILED_ prefix so they can be re-queued by hand.
    """
    stamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    dest = archive_dir / f"{'FAILED_' if failed else ''}{stamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
