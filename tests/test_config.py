"""Tests for config/settings.py - environment parsing and validation.

Covers:
- Exactly-one content source selection
- Mode, uid and gid parsing
- Destination path validation
- DHCP timeout parsing and fallback
"""

import pytest

from writefile.config import settings
from writefile.config.settings import load_request, parse_dhcp_timeout, parse_duration
from writefile.domain import (
    DEFAULT_DHCP_TIMEOUT_SECONDS,
    BootConfigContent,
    DhcpContent,
    LiteralContent,
    MetadataContent,
)
from writefile.storage.exceptions import ConfigurationError


class TestLoadRequest:
    """Tests for load_request() with a literal source."""

    def test_example_scenario(self, base_env):
        """Test the /dev/sdX ext4 /etc/config/app.conf example parses."""
        request = load_request(base_env)

        assert request.block_device == "/dev/sdX"
        assert request.filesystem_type == "ext4"
        assert request.destination == "/etc/config/app.conf"
        assert request.file_mode == 0o644
        assert request.dir_mode == 0o755
        assert request.uid == 0
        assert request.gid == 0
        assert request.source == LiteralContent(b"hello")

    def test_reads_os_environ_by_default(self, base_env, monkeypatch):
        """Test os.environ is used when no mapping is given."""
        for key, value in base_env.items():
            monkeypatch.setenv(key, value)
        for key in ("BOOTCONFIG_CONTENTS", "HEGEL_URLS", "STATIC_NETPLAN"):
            monkeypatch.delenv(key, raising=False)

        assert load_request().destination == "/etc/config/app.conf"

    def test_missing_block_device(self, base_env):
        """Test an empty DEST_DISK is rejected."""
        base_env["DEST_DISK"] = ""

        with pytest.raises(ConfigurationError, match="DEST_DISK"):
            load_request(base_env)

    @pytest.mark.parametrize("device", ["sda1", "/dev/sda1;rm -rf /", "/dev/sd a"])
    def test_invalid_block_device(self, base_env, device):
        """Test device paths outside /dev/ or with metacharacters are rejected."""
        base_env["DEST_DISK"] = device

        with pytest.raises(ConfigurationError, match="DEST_DISK"):
            load_request(base_env)

    def test_missing_filesystem_type(self, base_env):
        """Test an empty FS_TYPE is rejected."""
        base_env["FS_TYPE"] = ""

        with pytest.raises(ConfigurationError, match="FS_TYPE"):
            load_request(base_env)

    @pytest.mark.parametrize("path", ["etc/config/app.conf", "", "app.conf"])
    def test_relative_destination(self, base_env, path):
        """Test non-absolute destinations are rejected."""
        base_env["DEST_PATH"] = path

        with pytest.raises(ConfigurationError, match="absolute"):
            load_request(base_env)

    def test_destination_without_file_component(self, base_env):
        """Test a bare directory destination is rejected."""
        base_env["DEST_PATH"] = "/etc/config/"

        with pytest.raises(ConfigurationError, match="file component"):
            load_request(base_env)

    @pytest.mark.parametrize(
        "path",
        [
            "/../escaped/app.conf",
            "/etc/../../app.conf",
            "/etc/config/..",
            "/etc//config/app.conf",
            "/etc/./app.conf",
        ],
    )
    def test_destination_must_stay_under_mount(self, base_env, path):
        """Test parent references and unnormalized paths are rejected."""
        base_env["DEST_PATH"] = path

        with pytest.raises(ConfigurationError, match="DEST_PATH"):
            load_request(base_env)

    @pytest.mark.parametrize("variable", ["MODE", "DIRMODE"])
    @pytest.mark.parametrize("value", ["", "rw-r--r--", "0999", "17777"])
    def test_invalid_modes(self, base_env, variable, value):
        """Test unparsable or out-of-range octal modes are rejected."""
        base_env[variable] = value

        with pytest.raises(ConfigurationError, match=variable):
            load_request(base_env)

    @pytest.mark.parametrize("variable", ["UID", "GID"])
    def test_invalid_ids(self, base_env, variable):
        """Test non-numeric uid/gid are rejected."""
        base_env[variable] = "root"

        with pytest.raises(ConfigurationError, match=variable):
            load_request(base_env)

    def test_setuid_mode_accepted(self, base_env):
        """Test special permission bits parse."""
        base_env["MODE"] = "4755"

        assert load_request(base_env).file_mode == 0o4755


class TestContentSourceSelection:
    """Tests for the exactly-one content source rule."""

    def test_no_source_fails(self, source_free_env):
        """Test validation fails when no source is set."""
        with pytest.raises(ConfigurationError, match="got none"):
            load_request(source_free_env)

    @pytest.mark.parametrize(
        "extra",
        [
            {"BOOTCONFIG_CONTENTS": "kernel.foo = bar"},
            {"HEGEL_URLS": "http://10.1.1.1:50061"},
            {"STATIC_NETPLAN": "true"},
        ],
    )
    def test_two_sources_fail(self, base_env, extra):
        """Test validation fails when CONTENTS is combined with another source."""
        base_env.update(extra)

        with pytest.raises(ConfigurationError, match="exactly one"):
            load_request(base_env)

    def test_all_sources_fail(self, base_env):
        """Test validation fails with every source set."""
        base_env.update(
            {
                "BOOTCONFIG_CONTENTS": "kernel.foo = bar",
                "HEGEL_URLS": "http://10.1.1.1:50061",
                "STATIC_NETPLAN": "true",
            }
        )

        with pytest.raises(ConfigurationError) as exc_info:
            load_request(base_env)

        assert "CONTENTS, BOOTCONFIG_CONTENTS, HEGEL_URLS, STATIC_NETPLAN" in str(exc_info.value)

    def test_static_netplan_false_does_not_count(self, base_env):
        """Test STATIC_NETPLAN other than "true" is not a source."""
        base_env["STATIC_NETPLAN"] = "false"

        assert isinstance(load_request(base_env).source, LiteralContent)

    def test_bootconfig_source(self, source_free_env):
        """Test BOOTCONFIG_CONTENTS selects the bootconfig source."""
        source_free_env["BOOTCONFIG_CONTENTS"] = "kernel.foo = bar"

        assert load_request(source_free_env).source == BootConfigContent(b"kernel.foo = bar")

    def test_metadata_source(self, source_free_env):
        """Test HEGEL_URLS is split into an ordered endpoint tuple."""
        source_free_env["HEGEL_URLS"] = "http://10.1.1.1:50061, http://10.1.1.2:50061"

        source = load_request(source_free_env).source

        assert source == MetadataContent(("http://10.1.1.1:50061", "http://10.1.1.2:50061"))

    def test_metadata_source_without_endpoints(self, source_free_env):
        """Test a list of only separators is rejected."""
        source_free_env["HEGEL_URLS"] = " , "

        with pytest.raises(ConfigurationError, match="HEGEL_URLS"):
            load_request(source_free_env)

    def test_dhcp_source_defaults(self, source_free_env):
        """Test STATIC_NETPLAN without overrides uses discovery and 2 minutes."""
        source_free_env["STATIC_NETPLAN"] = "TRUE"

        source = load_request(source_free_env).source

        assert source == DhcpContent(interface=None, timeout=DEFAULT_DHCP_TIMEOUT_SECONDS)

    def test_dhcp_source_overrides(self, source_free_env):
        """Test IFNAME and DHCP_TIMEOUT are honoured."""
        source_free_env.update(
            {"STATIC_NETPLAN": "true", "IFNAME": "eno1", "DHCP_TIMEOUT": "90s"}
        )

        source = load_request(source_free_env).source

        assert source == DhcpContent(interface="eno1", timeout=90.0)


class TestParseDuration:
    """Tests for parse_duration()."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2m", 120.0),
            ("90s", 90.0),
            ("1m30s", 90.0),
            ("500ms", 0.5),
            ("1.5h", 5400.0),
            ("45", 45.0),
            ("2.5", 2.5),
        ],
    )
    def test_valid_durations(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "abc", "5x", "1m 30s", "m5", "-", "nan", "inf"])
    def test_invalid_durations(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestParseDhcpTimeout:
    """Tests for the DHCP timeout fallback."""

    def test_unset_uses_default(self):
        assert parse_dhcp_timeout(None) == DEFAULT_DHCP_TIMEOUT_SECONDS
        assert parse_dhcp_timeout("") == DEFAULT_DHCP_TIMEOUT_SECONDS

    def test_valid_value(self):
        assert parse_dhcp_timeout("30s") == 30.0

    @pytest.mark.parametrize("value", ["soon", "0s", "-5"])
    def test_invalid_value_warns_and_falls_back(self, value, log_records):
        """Test an unparsable timeout is a warning, not an error."""
        assert parse_dhcp_timeout(value) == DEFAULT_DHCP_TIMEOUT_SECONDS

        warnings = [r for r in log_records if r["level"].name == "WARNING"]
        assert warnings
        assert f"Invalid {settings.ENV_DHCP_TIMEOUT}: {value}" in warnings[0]["message"]
