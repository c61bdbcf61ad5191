from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from pathlib import Path

from adwizard.config import settings
from adwizard.providers.base import GeneratedImage


def _now_millis(now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    return int(now.timestamp() * 1000)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def safe_filename(name: str) -> str:
    # No directories, no traversal; ASCII only so the name can go into a header.
    return _UNSAFE_CHARS.sub("_", os.path.basename(name).replace("..", "_"))


def default_download_name(now: datetime | None = None) -> str:
    return f"advertisement-{_now_millis(now)}.png"


def write_download(
    image: GeneratedImage,
    directory: Path | str | None = None,
    filename: str | None = None,
) -> Path:
    """
    Write the final ad as PNG. Without a filename a timestamped default is used;
    without a directory it lands in <data_dir>/downloads.
    """
    out_dir = Path(directory or Path(settings.data_dir) / "downloads")
    out_dir.mkdir(parents=True, exist_ok=True)

    name = safe_filename(filename or "") or default_download_name()
    if not name.lower().endswith(".png"):
        name = f"{name}.png"

    path = out_dir / name
    path.write_bytes(image.to_png_bytes())
    return path
