"""Named pipes shared between the collector, scanner and remover containers."""

from __future__ import annotations

import json
import os
import time
from collections.abc import Iterable

from eraser.images import Image

PIPE_MODE = 0o644
SCAN_ERASE_PATH = "/run/eraser.sh/shared-data/scanErase"
COLLECT_SCAN_PATH = "/run/eraser.sh/shared-data/collectScan"
ERASE_COMPLETE_COLLECT_PATH = "/run/eraser.sh/shared-data/eraseCompleteCollect"
ERASE_COMPLETE_SCAN_PATH = "/run/eraser.sh/shared-data/eraseCompleteScan"
ERASE_COMPLETE_MESSAGE = "complete"


def _decode_images(data: bytes) -> list[Image]:
    decoded = json.loads(data)
    if decoded is None:
        return []
    if not isinstance(decoded, list):
        raise ValueError("image pipe must hold a JSON array")
    return [Image.from_dict(item) for item in decoded]


def read_image_pipe(
    path: str | os.PathLike[str],
    timeout: float | None = None,
    poll_interval: float = 1.0,
) -> list[Image]:
    """Wait for ``path`` to appear, then read a JSON list of images from it.

    Raises TimeoutError if the pipe does not appear within ``timeout`` seconds;
    with no timeout it waits indefinitely.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        try:
            pipe = open(path, "rb")
        except FileNotFoundError:
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"timed out waiting for pipe {path}") from None
            time.sleep(poll_interval)
            continue
        with pipe:
            data = pipe.read()
        return _decode_images(data)


def read_collect_scan_pipe(
    path: str | os.PathLike[str] = COLLECT_SCAN_PATH,
    timeout: float | None = None,
    poll_interval: float = 1.0,
) -> list[Image]:
    """Read the images the collector hands to the scanner."""
    return read_image_pipe(path, timeout=timeout, poll_interval=poll_interval)


def write_scan_erase_pipe(
    images: Iterable[Image], path: str | os.PathLike[str] = SCAN_ERASE_PATH
) -> None:
    """Create the scan-to-erase FIFO and write ``images`` to it as JSON.

    Blocks until a reader opens the pipe.
    """
    data = json.dumps([image.to_dict() for image in images], separators=(",", ":"))
    os.mkfifo(path, PIPE_MODE)
    with open(path, "wb") as pipe:
        pipe.write(data.encode())


def write_complete_message(path: str | os.PathLike[str]) -> None:
    """Write the completion message to an existing pipe."""
    fd = os.open(path, os.O_WRONLY)
    with os.fdopen(fd, "w") as pipe:
        pipe.write(ERASE_COMPLETE_MESSAGE)