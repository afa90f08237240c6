"""The exchange of images between a custom scanner and the other eraser containers."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from eraser.images import Image
from eraser.metrics import configure_metrics, export_metrics, record_metrics_scanner
from eraser.pipes import (
    COLLECT_SCAN_PATH,
    ERASE_COMPLETE_MESSAGE,
    ERASE_COMPLETE_SCAN_PATH,
    PIPE_MODE,
    SCAN_ERASE_PATH,
    read_collect_scan_pipe,
    write_scan_erase_pipe,
)

OTLP_ENDPOINT_ENV = "OTEL_EXPORTER_OTLP_ENDPOINT"


def _default_logger() -> logging.Logger:
    return logging.getLogger("eraser.scanner")


@dataclass
class ImageProvider:
    """Receives images from the collector and hands non-compliant ones to the remover.

    ``timeout`` bounds the wait for the collector's pipe; ``None`` waits forever.
    """

    timeout: float | None = None
    logger: logging.Logger = field(default_factory=_default_logger)
    delete_scan_failed_images: bool = True
    delete_eol_images: bool = False
    report_metrics: bool = False
    poll_interval: float = 1.0
    collect_scan_path: str | os.PathLike[str] = COLLECT_SCAN_PATH
    scan_erase_path: str | os.PathLike[str] = SCAN_ERASE_PATH
    erase_complete_scan_path: str | os.PathLike[str] = ERASE_COMPLETE_SCAN_PATH

    def receive_images(self) -> list[Image]:
        """Open the completion pipe for the remover, then read the collected images."""
        try:
            os.mkfifo(self.erase_complete_scan_path, PIPE_MODE)
        except OSError:
            self.logger.exception(
                "failed to create pipe", extra={"pipe_name": str(self.erase_complete_scan_path)}
            )
            raise
        try:
            os.chmod(self.erase_complete_scan_path, 0o666)
        except OSError:
            self.logger.exception(
                "unable to enable pipe for writing",
                extra={"pipe_name": str(self.erase_complete_scan_path)},
            )
            raise
        try:
            return read_collect_scan_pipe(
                self.collect_scan_path, timeout=self.timeout, poll_interval=self.poll_interval
            )
        except Exception:
            self.logger.exception("unable to read images from collect scan pipe")
            raise

    def send_images(
        self, non_compliant_images: Iterable[Image], failed_images: Iterable[Image]
    ) -> list[Image]:
        """Send images for removal; failed scans are included when so configured.

        Returns the images that were sent.
        """
        images = list(non_compliant_images)
        if self.delete_scan_failed_images:
            images.extend(failed_images)

        try:
            write_scan_erase_pipe(images, self.scan_erase_path)
        except Exception:
            self.logger.exception("unable to write non-compliant images to scan erase pipe")
            raise

        if self.report_metrics:
            exporter, reader, provider = configure_metrics(
                os.environ.get(OTLP_ENDPOINT_ENV, "")
            )
            if exporter is None or reader is None or provider is None:
                self.logger.error("error recording metrics")
                raise RuntimeError("unable to configure metrics")
            try:
                record_metrics_scanner(provider, len(images))
            except Exception:
                self.logger.exception("error recording metrics")
                raise
            export_metrics(exporter, reader)
        return images

    def finish(self) -> bool:
        """Wait for the remover's completion message.

        Returns True when the expected message arrived, False for anything else.
        """
        try:
            with open(self.erase_complete_scan_path, "rb") as pipe:
                data = pipe.read().decode(errors="replace")
        except OSError:
            self.logger.exception(
                "failed to read pipe", extra={"pipe_name": str(self.erase_complete_scan_path)}
            )
            raise
        if data != ERASE_COMPLETE_MESSAGE:
            self.logger.info(
                "garbage in pipe",
                extra={"pipe_name": str(self.erase_complete_scan_path), "in_pipe": data},
            )
            return False
        self.logger.info("scanning complete, exiting")
        return True