"""Image records and the rules deciding which images may be removed."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class Image:
    """An image on a node, known by its id, names (repo tags) and digests."""

    image_id: str
    names: list[str] = field(default_factory=list)
    digests: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"image_id": self.image_id}
        if self.names:
            data["names"] = list(self.names)
        if self.digests:
            data["digests"] = list(self.digests)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Image":
        if not isinstance(data, Mapping):
            raise ValueError(f"image must be an object, got {type(data).__name__}")
        image_id = data.get("image_id") or ""
        names = data.get("names") or []
        digests = data.get("digests") or []
        if not isinstance(image_id, str):
            raise ValueError("image_id must be a string")
        for key, values in (("names", names), ("digests", digests)):
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise ValueError(f"{key} must be a list of strings")
        return cls(image_id=image_id, names=list(names), digests=list(digests))


def _references(id_to_image: Mapping[str, Image], image_id: str) -> list[str]:
    image = id_to_image.get(image_id)
    if image is None:
        return []
    return [*image.names, *image.digests]


def _container_image_id(container: Any) -> str:
    spec = container.image
    if spec is None:
        return ""
    return spec.image or ""


def get_running_images(
    containers: Iterable[Any], id_to_image: Mapping[str, Image]
) -> dict[str, str]:
    """Map every id, name and digest of a running image to its image id."""
    running: dict[str, str] = {}
    for container in containers:
        image_id = _container_image_id(container)
        running[image_id] = image_id
        for ref in _references(id_to_image, image_id):
            running[ref] = image_id
    return running


def get_non_running_images(
    running_images: Mapping[str, str],
    all_images: Iterable[Image],
    id_to_image: Mapping[str, Image],
) -> dict[str, str]:
    """Map every id, name and digest of an image that is not running to its id."""
    non_running: dict[str, str] = {}
    for image in all_images:
        image_id = image.image_id
        if image_id in running_images:
            continue
        non_running[image_id] = image_id
        for ref in _references(id_to_image, image_id):
            non_running[ref] = image_id
    return non_running


def is_excluded(
    excluded: Iterable[str] | Mapping[str, Any],
    img: str,
    id_to_image: Mapping[str, Image],
) -> bool:
    """Tell whether ``img`` matches the exclusion list, directly or by pattern.

    Entries ending in ``/*`` exclude a repository; entries ending in ``:*``
    exclude every tag of an image.
    """
    excluded = set(excluded)
    if not excluded:
        return False

    refs = _references(id_to_image, img)
    if img in excluded or any(ref in excluded for ref in refs):
        return True

    candidates = [img, *refs]
    for key in excluded:
        if key.endswith("/*"):
            prefix = key.split("*")[0]
        elif key.endswith(":*"):
            prefix = key.split(":")[0]
        else:
            continue
        if any(candidate.startswith(prefix) for candidate in candidates):
            return True
    return False


def process_repo_digests(repo_digests: Iterable[str]) -> tuple[list[str], list[ValueError]]:
    """Extract unique digests from ``repo@digest`` strings.

    Returns the digests and one error for each malformed entry.
    """
    digests: dict[str, None] = {}
    errors: list[ValueError] = []
    for repo_digest in repo_digests:
        parts = repo_digest.split("@")
        if len(parts) < 2:
            errors.append(ValueError(f"repoDigest not formatted correctly: {repo_digest}"))
            continue
        digests[parts[1]] = None
    return list(digests), errors


def parse_image_list(path: str | os.PathLike[str]) -> list[str]:
    """Read a JSON list of image references from ``path``."""
    data = json.loads(Path(path).read_text())
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise ValueError(f"{path}: image list must be a JSON array of strings")
    return data


def _read_config_map(directory: Path) -> list[str]:
    json_files = sorted(
        entry.name for entry in os.scandir(directory) if entry.name.endswith(".json")
    )
    if not json_files:
        raise ValueError(f"no JSON file found in {directory}")
    data = json.loads((directory / json_files[0]).read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{directory / json_files[0]}: exclusion list must be an object")
    images = data.get("excluded") or []
    if not isinstance(images, list) or not all(isinstance(i, str) for i in images):
        raise ValueError(f"{directory / json_files[0]}: 'excluded' must be a list of strings")
    return images


def parse_excluded(directory: str | os.PathLike[str] = ".") -> set[str]:
    """Collect excluded images from every ``exclude-*`` config map in ``directory``."""
    base = Path(directory)
    excluded: set[str] = set()
    for name in sorted(entry.name for entry in os.scandir(base)):
        if name.startswith("exclude-"):
            excluded.update(_read_config_map(base / name))
    return excluded