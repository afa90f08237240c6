"""Scanning collected images and sorting them into vulnerable and failed ones."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, MutableMapping, Sequence
from dataclasses import dataclass, field

from eraser.images import Image
from eraser.trivy_config import (
    SECURITY_CHECK_CONFIG,
    SECURITY_CHECK_SECRET,
    SECURITY_CHECK_VULN,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    SEVERITY_UNKNOWN,
    VULN_TYPE_LIBRARY,
    VULN_TYPE_OS,
    ScanStatus,
    VulnConfig,
)

log = logging.getLogger("eraser.scanner")


class Scanner:
    """Scans single images within an overall time budget.

    ``scan_image`` decides the status of one image. ``total_timeout`` is the
    budget in seconds, counted from construction; ``None`` means no limit.
    """

    def __init__(
        self,
        scan_image: Callable[[Image], ScanStatus],
        total_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._scan_image = scan_image
        self._clock = clock
        self._deadline = None if total_timeout is None else clock() + total_timeout

    def scan(self, image: Image) -> ScanStatus:
        """Return the scan status of ``image``."""
        return ScanStatus(self._scan_image(image))

    def timed_out(self) -> bool:
        """Tell whether the total time budget is spent."""
        return self._deadline is not None and self._clock() >= self._deadline


@dataclass
class ScanResult:
    """Images sorted by a scan run; ``timed_out`` is set when the budget ran out."""

    vulnerable: list[Image] = field(default_factory=list)
    failed: list[Image] = field(default_factory=list)
    timed_out: bool = False


def fill_map(values: Iterable[str], options: MutableMapping[str, bool]) -> None:
    """Mark every value in ``values`` as enabled in ``options``."""
    for value in values:
        options[value] = True


def build_option_maps(
    vuln_config: VulnConfig,
) -> tuple[dict[str, bool], dict[str, bool], dict[str, bool]]:
    """Return the severity, vulnerability type and security check maps for a config."""
    if vuln_config is None:
        raise ValueError("valid configuration required")
    severities = dict.fromkeys(
        (SEVERITY_CRITICAL, SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW, SEVERITY_UNKNOWN),
        False,
    )
    vuln_types = dict.fromkeys((VULN_TYPE_OS, VULN_TYPE_LIBRARY), False)
    security_checks = dict.fromkeys(
        (SECURITY_CHECK_VULN, SECURITY_CHECK_SECRET, SECURITY_CHECK_CONFIG), False
    )
    fill_map(vuln_config.severities, severities)
    fill_map(vuln_config.types, vuln_types)
    fill_map(vuln_config.security_checks, security_checks)
    return severities, vuln_types, security_checks


def scan(scanner: Scanner, images: Sequence[Image]) -> ScanResult:
    """Scan ``images`` in order.

    Images whose scan raises or fails count as failed. Once the scanner's time
    budget is spent, every image not yet scanned counts as failed as well.
    """
    result = ScanResult()
    for index, image in enumerate(images):
        if scanner.timed_out():
            result.failed.extend(images[index:])
            result.timed_out = True
            log.error("image scan total timeout exceeded")
            return result
        try:
            status = scanner.scan(image)
        except Exception as err:
            result.failed.append(image)
            log.error("scan failed: %s", err)
            continue
        if status is ScanStatus.NON_COMPLIANT:
            log.info("vulnerable image found", extra={"img": image.image_id})
            result.vulnerable.append(image)
        elif status is ScanStatus.FAILED:
            result.failed.append(image)
    return result