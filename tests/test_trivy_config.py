import pytest

from eraser.trivy_config import (
    Config,
    ScanStatus,
    TimeoutConfig,
    VulnConfig,
    default_config,
    load_config,
    parse_comma_separated_options,
    parse_duration,
    true_map_keys,
)


@pytest.mark.parametrize(
    "options, expect_err, map_state",
    [
        ("three,four", True, {}),
        ("one,two", False, {"one": True, "two": True}),
        ("two", False, {"one": False, "two": True}),
    ],
)
def test_parse_comma_separated_options(options, expect_err, map_state):
    m = {"one": False, "two": False}
    if expect_err:
        with pytest.raises(ValueError):
            parse_comma_separated_options(m, options)
    else:
        parse_comma_separated_options(m, options)
    for key, value in map_state.items():
        assert m[key] == value


def test_parse_comma_separated_options_error_names_item():
    m = {"one": False, "two": False}
    with pytest.raises(ValueError, match="'three' was not one of"):
        parse_comma_separated_options(m, "one,three")
    assert m["one"] is True


def test_true_map_keys():
    assert true_map_keys({"os": True, "library": False, "vuln": True}) == ["os", "vuln"]
    assert true_map_keys({"os": False}) == []


def test_default_config():
    cfg = default_config()
    assert cfg.cache_dir == "/var/lib/trivy"
    assert cfg.db_repo == "ghcr.io/aquasecurity/trivy-db"
    assert cfg.delete_failed_images is True
    assert cfg.delete_eol_images is True
    assert cfg.vulnerabilities == VulnConfig(
        ignore_unfixed=True,
        types=["os", "library"],
        security_checks=["vuln"],
        severities=["CRITICAL", "HIGH", "MEDIUM", "LOW"],
    )
    assert cfg.timeout == TimeoutConfig(total=23 * 3600.0, per_image=3600.0)


def test_default_config_is_fresh_each_time():
    first = default_config()
    first.vulnerabilities.types.append("extra")
    assert default_config().vulnerabilities.types == ["os", "library"]


def test_scan_status_order():
    assert [ScanStatus(v) for v in (0, 1, 2)] == [
        ScanStatus.FAILED,
        ScanStatus.NON_COMPLIANT,
        ScanStatus.OK,
    ]


@pytest.mark.parametrize(
    "text, seconds",
    [
        ("0", 0.0),
        ("23h", 82800.0),
        ("1h30m", 5400.0),
        ("1.5h", 5400.0),
        ("300ms", 0.3),
        ("-2s", -2.0),
    ],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == seconds


@pytest.mark.parametrize("text", ["", "1", "h", "1d", "1h x", "-"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_load_config_merges_scanner_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "components:\n"
        "  scanner:\n"
        "    enabled: true\n"
        "    config: |\n"
        "      cacheDir: /tmp/trivy\n"
        "      deleteEOLImages: false\n"
        "      vulnerabilities:\n"
        "        severities: [CRITICAL]\n"
        "      timeout:\n"
        "        total: 1h\n"
    )
    cfg = load_config(path)
    defaults = default_config()
    assert cfg.cache_dir == "/tmp/trivy"
    assert cfg.delete_eol_images is False
    assert cfg.vulnerabilities.severities == ["CRITICAL"]
    assert cfg.vulnerabilities.ignore_unfixed is True
    assert cfg.vulnerabilities.types == defaults.vulnerabilities.types
    assert cfg.timeout.total == 3600.0
    assert cfg.timeout.per_image == defaults.timeout.per_image
    assert cfg.db_repo == defaults.db_repo


def test_load_config_without_scanner_config_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("components:\n  remover:\n    enabled: true\n")
    assert load_config(path) == default_config()


def test_load_config_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == default_config()


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_load_config_rejects_wrong_types(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "components:\n"
        "  scanner:\n"
        "    config: |\n"
        "      vulnerabilities: nope\n"
    )
    with pytest.raises(ValueError):
        load_config(path)


def test_load_config_rejects_bad_duration(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "components:\n"
        "  scanner:\n"
        "    config: |\n"
        "      timeout:\n"
        "        perImage: soon\n"
    )
    with pytest.raises(ValueError, match="perImage"):
        load_config(path)


def test_config_zero_values():
    cfg = Config()
    assert cfg.cache_dir == ""
    assert cfg.vulnerabilities.types == []
    assert cfg.timeout.total == 0.0