"""Removal of non-running images from a node through the container runtime."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from eraser.cri import CriContainer, CriImage
from eraser.images import (
    Image,
    get_non_running_images,
    get_running_images,
    is_excluded,
    parse_image_list,
    process_repo_digests,
)
from eraser.pipes import (
    ERASE_COMPLETE_COLLECT_PATH,
    ERASE_COMPLETE_SCAN_PATH,
    SCAN_ERASE_PATH,
    read_image_pipe,
    write_complete_message,
)

log = logging.getLogger("eraser.remover")

PRUNE_ALL = "*"


class _Remover(Protocol):
    def list_images(self) -> list[CriImage]: ...

    def list_containers(self) -> list[CriContainer]: ...

    def delete_image(self, image: str) -> None: ...


def _names(id_to_image: Mapping[str, Image], image_id: str) -> list[str]:
    image = id_to_image.get(image_id)
    return list(image.names) if image is not None else []


def _collect_images(client: _Remover) -> tuple[list[Image], dict[str, Image]]:
    all_images: list[Image] = []
    id_to_image: dict[str, Image] = {}
    for cri_image in client.list_images():
        digests, errors = process_repo_digests(cri_image.repo_digests or [])
        for error in errors:
            log.error("error processing digest: %s", error)
        image = Image(
            image_id=cri_image.id,
            names=list(cri_image.repo_tags or []),
            digests=digests,
        )
        all_images.append(image)
        id_to_image[cri_image.id] = image
    return all_images, id_to_image


def remove_images(
    client: _Remover,
    target_images: Iterable[str],
    excluded: Iterable[str] | Mapping[str, Any] | None = None,
) -> int:
    """Remove the targeted images that are not running and not excluded.

    A target of ``*`` prunes every non-running image. Returns how many
    removals succeeded; failures to remove a single image are logged.
    """
    excluded_set = set(excluded or ())
    all_images, id_to_image = _collect_images(client)
    containers = client.list_containers()

    running = get_running_images(containers, id_to_image)
    non_running = get_non_running_images(running, all_images, id_to_image)

    log.debug("map of non-running images", extra={"non_running_images": non_running})
    log.debug("map of running images", extra={"running_images": running})

    removed = 0
    prune = False
    deleted: set[str] = set()

    for target in target_images:
        if target == PRUNE_ALL:
            prune = True
            continue

        image_id = non_running.get(target)
        if image_id is not None:
            details = {
                "given": target,
                "image_id": image_id,
                "image_names": _names(id_to_image, image_id),
            }
            if is_excluded(excluded_set, target, id_to_image):
                log.info("image is excluded", extra=details)
                continue
            try:
                client.delete_image(image_id)
            except Exception as err:
                log.error("error removing image: %s", err, extra=details)
                continue
            deleted.add(target)
            log.info("removed image", extra=details)
            removed += 1
            continue

        image_id = running.get(target)
        if image_id is not None:
            log.info(
                "image is running",
                extra={
                    "given": target,
                    "image_id": image_id,
                    "image_names": _names(id_to_image, image_id),
                },
            )
            continue

        log.info("image is not on node", extra={"given": target})

    if prune:
        success = True
        for image_id in list(non_running.values()):
            if image_id in deleted:
                continue
            details = {"image_id": image_id, "image_names": _names(id_to_image, image_id)}
            if is_excluded(excluded_set, image_id, id_to_image):
                log.info("image is excluded", extra=details)
                continue
            try:
                client.delete_image(image_id)
            except Exception as err:
                success = False
                log.error("error removing image: %s", err, extra=details)
                continue
            log.info("removed image", extra={"digest": image_id})
            deleted.add(image_id)
            removed += 1
        if success:
            log.info("prune successful")
        else:
            log.info("error during prune")

    return removed


def load_target_images(
    image_list_path: str | os.PathLike[str] | None = None,
    scan_erase_path: str | os.PathLike[str] = SCAN_ERASE_PATH,
) -> list[str]:
    """Return the images to remove.

    With an image list file the list is read from it; otherwise the ids of the
    non-compliant images the scanner writes to the scan-erase pipe are used.
    """
    if image_list_path:
        images = parse_image_list(image_list_path)
        log.info("successfully parsed image list file")
        return images
    non_compliant = read_image_pipe(scan_erase_path)
    log.info("successfully created imagelist from scanned non-compliant images")
    return [image.image_id for image in non_compliant]


def signal_completion(
    collect_path: str | os.PathLike[str] = ERASE_COMPLETE_COLLECT_PATH,
    scan_path: str | os.PathLike[str] = ERASE_COMPLETE_SCAN_PATH,
) -> bool:
    """Tell the collector, and the scanner if present, that removal is done.

    Returns whether the scanner was notified; a missing scanner pipe means the
    scanner is disabled.
    """
    write_complete_message(collect_path)
    try:
        write_complete_message(scan_path)
    except FileNotFoundError:
        return False
    return True