"""Clients for the container runtime interface (CRI), with API version fallback."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from eraser.endpoint import get_address


class RuntimeVersion(str, Enum):
    """CRI API versions a runtime may speak."""

    V1 = "v1"
    V1ALPHA2 = "v1alpha2"


@dataclass
class ImageSpec:
    """Reference to an image as the runtime knows it."""

    image: str = ""
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class ContainerMetadata:
    """Name and restart attempt of a container."""

    name: str = ""
    attempt: int = 0


@dataclass
class CriContainer:
    """A container as reported by the runtime."""

    id: str = ""
    pod_sandbox_id: str = ""
    metadata: ContainerMetadata | None = None
    image: ImageSpec | None = None
    image_ref: str = ""
    state: int = 0
    created_at: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class CriImage:
    """An image as reported by the runtime."""

    id: str = ""
    repo_tags: list[str] = field(default_factory=list)
    repo_digests: list[str] = field(default_factory=list)
    size: int = 0
    uid: int | None = None
    username: str = ""
    spec: ImageSpec | None = None
    pinned: bool = False


class ImageNotFoundError(LookupError):
    """The runtime does not know the image that was asked for."""


class CriErrors(Exception):
    """Several errors collected while trying CRI versions one after another."""

    def __init__(self, errors: Iterable[BaseException | None] = ()) -> None:
        super().__init__()
        self.errors: list[BaseException] = [e for e in errors if e is not None]

    def append(self, error: BaseException | None) -> None:
        """Add ``error``; ``None`` is ignored."""
        if error is None:
            return
        self.errors.append(error)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    def __str__(self) -> str:
        return "\n".join(str(error) for error in self.errors)


class _RuntimeService(Protocol):
    def version(self) -> str: ...

    def list_containers(self) -> list[Any]: ...


class _ImageService(Protocol):
    def list_images(self) -> list[Any]: ...

    def remove_image(self, image: str) -> None: ...


class _Connection(Protocol):
    def runtime_service(self, api_version: RuntimeVersion) -> _RuntimeService: ...

    def image_service(self, api_version: RuntimeVersion) -> _ImageService: ...


class RuntimeClient:
    """Lists and removes images through a runtime speaking CRI v1."""

    def __init__(self, images: _ImageService, runtime: _RuntimeService) -> None:
        self.images = images
        self.runtime = runtime

    def list_images(self) -> list[CriImage]:
        return list(self.images.list_images())

    def list_containers(self) -> list[CriContainer]:
        return list(self.runtime.list_containers())

    def delete_image(self, image: str) -> None:
        """Remove ``image``; an image the runtime no longer has is not an error."""
        if not image:
            return
        try:
            self.images.remove_image(image)
        except ImageNotFoundError:
            return


class V1Alpha2Client(RuntimeClient):
    """A client for runtimes speaking CRI v1alpha2, returning v1 records."""

    def list_images(self) -> list[CriImage]:
        return [convert_image(image) for image in self.images.list_images()]

    def list_containers(self) -> list[CriContainer]:
        return [convert_container(c) for c in self.runtime.list_containers()]


def _convert_spec(spec: Any) -> ImageSpec | None:
    if spec is None:
        return None
    return ImageSpec(image=spec.image, annotations=spec.annotations)


def convert_container(container: Any) -> CriContainer | None:
    """Turn a v1alpha2 container record into a v1 one."""
    if container is None:
        return None
    metadata = None
    if container.metadata is not None:
        metadata = ContainerMetadata(
            name=container.metadata.name, attempt=container.metadata.attempt
        )
    return CriContainer(
        id=container.id,
        pod_sandbox_id=container.pod_sandbox_id,
        metadata=metadata,
        image=_convert_spec(container.image),
        image_ref=container.image_ref,
        state=int(container.state),
        created_at=container.created_at,
        labels=container.labels,
        annotations=container.annotations,
    )


def convert_image(image: Any) -> CriImage | None:
    """Turn a v1alpha2 image record into a v1 one."""
    if image is None:
        return None
    uid = image.uid
    if uid is not None:
        uid = getattr(uid, "value", uid)
    return CriImage(
        id=image.id,
        repo_tags=image.repo_tags,
        repo_digests=image.repo_digests,
        size=image.size,
        uid=uid,
        username=image.username,
        spec=_convert_spec(image.spec),
        pinned=image.pinned,
    )


def client_for_version(connection: _Connection, runtime_api_version: str) -> RuntimeClient:
    """Build the client matching the API version the runtime reported."""
    if runtime_api_version == RuntimeVersion.V1.value:
        return RuntimeClient(
            images=connection.image_service(RuntimeVersion.V1),
            runtime=connection.runtime_service(RuntimeVersion.V1),
        )
    if runtime_api_version == RuntimeVersion.V1ALPHA2.value:
        return V1Alpha2Client(
            images=connection.image_service(RuntimeVersion.V1ALPHA2),
            runtime=connection.runtime_service(RuntimeVersion.V1ALPHA2),
        )
    raise ValueError(f"unrecognized CRI version: '{runtime_api_version}'")


def new_client_with_fallback(connection: _Connection) -> RuntimeClient:
    """Try CRI v1, then v1alpha2; raise CriErrors holding every failure."""
    errors = CriErrors()
    for api_version in (RuntimeVersion.V1, RuntimeVersion.V1ALPHA2):
        try:
            reported = connection.runtime_service(api_version).version()
            return client_for_version(connection, reported)
        except Exception as err:  # every failure is kept and reported together
            errors.append(err)
    raise errors


def new_remover_client(
    socket_path: str, connect: Callable[[str], _Connection]
) -> RuntimeClient:
    """Connect to the runtime socket at ``socket_path`` and build a client."""
    address = get_address(socket_path)
    return new_client_with_fallback(connect(address))