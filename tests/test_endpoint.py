import pytest

from eraser.endpoint import (
    CONTAINERD_PATH,
    DOCKER_PATH,
    EndpointDeprecatedError,
    EndpointParseError,
    OnlyUnixSocketError,
    ProtocolNotSupportedError,
    get_address,
    parse_endpoint,
    parse_endpoint_with_fallback_protocol,
)


@pytest.mark.parametrize(
    "endpoint, protocol, addr",
    [
        (f"unix://{CONTAINERD_PATH}", "unix", CONTAINERD_PATH),
        ("192.168.123.132", "unix", ""),
        ("tcp://localhost:8080", "tcp", "localhost:8080"),
    ],
)
def test_parse_endpoint_with_fallback_protocol(endpoint, protocol, addr):
    assert parse_endpoint_with_fallback_protocol(endpoint, "unix") == (protocol, addr)


def test_parse_endpoint_with_fallback_protocol_invalid_host():
    with pytest.raises(EndpointParseError) as info:
        parse_endpoint_with_fallback_protocol("  ", "unix")
    assert info.value.protocol == ""


def test_parse_endpoint_unix():
    assert parse_endpoint(f"unix://{CONTAINERD_PATH}") == ("unix", CONTAINERD_PATH)


def test_parse_endpoint_without_scheme_is_deprecated():
    with pytest.raises(EndpointDeprecatedError) as info:
        parse_endpoint("192.168.123.132")
    assert info.value.protocol == ""


def test_parse_endpoint_unsupported_protocol():
    with pytest.raises(ProtocolNotSupportedError) as info:
        parse_endpoint("https://myaccount.blob.core.windows.net/mycontainer/myblob")
    assert info.value.protocol == "https"


def test_parse_endpoint_invalid_host():
    with pytest.raises(EndpointParseError) as info:
        parse_endpoint("unix://  ")
    assert info.value.protocol == ""
    assert "invalid character" in str(info.value)


def test_get_address_unix():
    assert get_address(f"unix://{DOCKER_PATH}") == DOCKER_PATH


def test_get_address_host_port_is_unsupported_protocol():
    with pytest.raises(ProtocolNotSupportedError):
        get_address("localhost:8080")


def test_get_address_tcp_rejected():
    with pytest.raises(OnlyUnixSocketError) as info:
        get_address("tcp://localhost:8080")
    assert info.value.protocol == "tcp"