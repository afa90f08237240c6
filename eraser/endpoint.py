"""Parsing of container runtime endpoints and the known runtime sockets."""

from __future__ import annotations

import json
from urllib.parse import unquote

UNIX_PROTOCOL = "unix"

RUNTIME_DOCKER = "docker"
RUNTIME_CONTAINERD = "containerd"
RUNTIME_CRIO = "cri-o"
DOCKER_PATH = "/run/dockershim.sock"
CONTAINERD_PATH = "/run/containerd/containerd.sock"
CRIO_PATH = "/run/crio/crio.sock"

ENV_ERASER_CONTAINER_RUNTIME = "ERASER_CONTAINER_RUNTIME"

RUNTIME_SOCKET_PATHS = {
    RUNTIME_DOCKER: DOCKER_PATH,
    RUNTIME_CONTAINERD: CONTAINERD_PATH,
    RUNTIME_CRIO: CRIO_PATH,
}

_HOST_SAFE = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    "-_.~!$&'()*+,;=:[]<>\"%"
)


class EndpointError(ValueError):
    """An endpoint could not be used; ``protocol`` is the scheme that was seen."""

    def __init__(self, message: str, protocol: str = "") -> None:
        super().__init__(message)
        self.protocol = protocol


class EndpointParseError(EndpointError):
    """The endpoint is not a valid URL."""


class ProtocolNotSupportedError(EndpointError):
    """The endpoint uses a protocol other than tcp or unix."""


class EndpointDeprecatedError(EndpointError):
    """The endpoint has no scheme."""


class OnlyUnixSocketError(EndpointError):
    """Only unix socket endpoints can be dialled."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _parse_failure(raw: str, reason: str) -> EndpointParseError:
    return EndpointParseError(f"error while parsing: parse {_quote(raw)}: {reason}")


def _split_scheme(raw: str) -> tuple[str, str]:
    for i, ch in enumerate(raw):
        if "a" <= ch <= "z" or "A" <= ch <= "Z":
            continue
        if "0" <= ch <= "9" or ch in "+-.":
            if i == 0:
                return "", raw
            continue
        if ch == ":":
            if i == 0:
                raise _parse_failure(raw, "missing protocol scheme")
            return raw[:i].lower(), raw[i + 1 :]
        return "", raw
    return "", raw


def _valid_optional_port(port: str) -> bool:
    if not port:
        return True
    return port[0] == ":" and all(c in "0123456789" for c in port[1:])


def _parse_host(raw: str, host: str) -> str:
    if host.startswith("["):
        end = host.find("]")
        if end < 0:
            raise _parse_failure(raw, "missing ']' in host")
        port = host[end + 1 :]
        if not _valid_optional_port(port):
            raise _parse_failure(raw, f"invalid port {_quote(port)} after host")
    else:
        colon = host.rfind(":")
        if colon != -1 and not _valid_optional_port(host[colon:]):
            raise _parse_failure(raw, f"invalid port {_quote(host[colon:])} after host")
    for ch in host:
        if ord(ch) < 0x80 and ch not in _HOST_SAFE:
            raise _parse_failure(raw, f"invalid character {_quote(ch)} in host name")
    return unquote(host)


def _parse_url(raw: str) -> tuple[str, str, str]:
    """Split ``raw`` into scheme, host and path, rejecting malformed input."""
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in raw):
        raise _parse_failure(raw, "net/url: invalid control character in URL")
    without_fragment = raw.split("#", 1)[0]
    scheme, rest = _split_scheme(without_fragment)
    rest = rest.split("?", 1)[0]

    if not rest.startswith("/"):
        if scheme:
            return scheme, "", ""
        if ":" in rest.split("/", 1)[0]:
            raise _parse_failure(raw, "first path segment in URL cannot contain colon")

    host = ""
    if (scheme or not rest.startswith("///")) and rest.startswith("//"):
        authority, slash, remainder = rest[2:].partition("/")
        rest = slash + remainder
        host = _parse_host(raw, authority.rpartition("@")[2])
    return scheme, host, unquote(rest)


def parse_endpoint(endpoint: str) -> tuple[str, str]:
    """Return ``(protocol, address)`` for a tcp or unix endpoint URL."""
    scheme, host, path = _parse_url(endpoint)
    if scheme == "tcp":
        return "tcp", host
    if scheme == "unix":
        return "unix", path
    if scheme == "":
        raise EndpointDeprecatedError(
            f"using {_quote(endpoint)} as endpoint is deprecated, "
            "please consider using full url format"
        )
    raise ProtocolNotSupportedError(
        f"{_quote(scheme)}: protocol not supported", protocol=scheme
    )


def parse_endpoint_with_fallback_protocol(
    endpoint: str, fallback_protocol: str
) -> tuple[str, str]:
    """Parse ``endpoint``, retrying with ``fallback_protocol`` when no scheme is found."""
    try:
        return parse_endpoint(endpoint)
    except EndpointError as err:
        if err.protocol:
            raise
    return parse_endpoint(f"{fallback_protocol}://{endpoint}")


def get_address(endpoint: str) -> str:
    """Return the unix socket path an endpoint refers to."""
    protocol, address = parse_endpoint_with_fallback_protocol(endpoint, UNIX_PROTOCOL)
    if protocol != UNIX_PROTOCOL:
        raise OnlyUnixSocketError("only support unix socket endpoint", protocol=protocol)
    return address