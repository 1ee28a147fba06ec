"""Build the media command table from the commands directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from alertcast.core.guards import TIER_EVERYONE, TIER_SUBSCRIBER, TIER_VIP

logger = logging.getLogger("CommandTable")

# folder name -> required tier, in scan order
TIER_FOLDERS = {
    "everyone": TIER_EVERYONE,
    "subscribers": TIER_SUBSCRIBER,
    "vips": TIER_VIP,
}

AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".ogg"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".webm"})


@dataclass(frozen=True)
class MediaCommand:
    """One chat-triggered media file."""

    name: str
    filename: str  # "<tier folder>/<file>", relative to the media root
    tier: str
    media_type: str


def media_type_for(path: Path) -> str | None:
    ext = path.suffix.lower()
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    return None


def scan_media_commands(base_dir: Path | str) -> dict[str, MediaCommand]:
    """Scan tier folders under *base_dir*.

    The command name is the lowercased file stem. When two files map to
    the same name the first one scanned wins and the other is skipped
    with a warning.
    """
    base = Path(base_dir)
    commands: dict[str, MediaCommand] = {}

    for folder, tier in TIER_FOLDERS.items():
        folder_path = base / folder
        if not folder_path.is_dir():
            continue

        try:
            entries = sorted(folder_path.iterdir())
        except OSError as e:
            logger.warning(f"Could not read command folder {folder_path}: {e}")
            continue

        for path in entries:
            if not path.is_file():
                continue
            media_type = media_type_for(path)
            if media_type is None:
                continue

            name = path.stem.lower()
            relative = f"{folder}/{path.name}"
            if name in commands:
                logger.warning(f"Duplicate command '!{name}' at {relative}, skipping")
                continue
            commands[name] = MediaCommand(
                name=name, filename=relative, tier=tier, media_type=media_type
            )

    logger.info(f"Loaded {len(commands)} media commands from {base}")
    return commands
