"""操作系统描述与自动检测测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.osdep.profile import (
    OperatingSystemProfile,
    autodetect_operating_system,
    ensure_derivatives_refer_to_their_parents,
    guess_operating_system,
    os_from_os_release,
)

OS_RELEASE = """\
NAME="Ubuntu"
VERSION="22.04.3 LTS (Jammy Jellyfish)"
ID=ubuntu
ID_LIKE=debian
VERSION_ID="22.04"
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestProfile:
    def test_normalized_with_default(self) -> None:
        profile = OperatingSystemProfile(("Ubuntu", "Debian"), ("22.04",))
        assert profile.names == ("ubuntu", "debian", "default")
        assert profile.versions == ("22.04", "default")

    def test_default_is_not_duplicated(self) -> None:
        profile = OperatingSystemProfile(("arch", "default"), ("default",))
        assert profile.names == ("arch", "default")
        assert profile.versions == ("default",)

    def test_parse(self) -> None:
        profile = OperatingSystemProfile.parse("ubuntu,debian:22.04,jammy")
        assert profile.names == ("ubuntu", "debian", "default")
        assert profile.versions == ("22.04", "jammy", "default")
        assert str(profile) == "ubuntu,debian,default:22.04,jammy,default"

    def test_parse_without_versions(self) -> None:
        assert OperatingSystemProfile.parse("arch").versions == ("default",)

    def test_parse_rejects_empty_names(self) -> None:
        with pytest.raises(ConfigError):
            OperatingSystemProfile.parse(":1.0")

    @pytest.mark.parametrize(("names", "manager"), [
        (("ubuntu", "debian"), "apt-dpkg"),
        (("fedora",), "yum"),
        (("macos-brew", "darwin"), "brew"),
        (("plan9",), "unknown"),
    ])
    def test_host_manager(self, names: tuple[str, ...], manager: str) -> None:
        assert OperatingSystemProfile(names, ()).host_manager == manager


class TestOsRelease:
    def test_parse_os_release(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "os-release", OS_RELEASE)
        names, versions = os_from_os_release(path)
        assert names == ["ubuntu", "debian"]
        assert versions[0] == "22.04"
        assert "Jammy" in versions

    def test_missing_file(self, tmp_path: Path) -> None:
        assert os_from_os_release(tmp_path / "nope") is None


class TestGuess:
    def test_arch(self, tmp_path: Path) -> None:
        _write(tmp_path / "etc/arch-release", "")
        assert guess_operating_system(tmp_path) == (["arch"], [])

    def test_debian_sid(self, tmp_path: Path) -> None:
        _write(tmp_path / "etc/debian_version", "trixie/sid\n")
        assert guess_operating_system(tmp_path) == (["debian"], ["unstable", "sid"])

    def test_parent_distribution_added(self, tmp_path: Path) -> None:
        _write(tmp_path / "etc/debian_version", "12.1\n")
        assert ensure_derivatives_refer_to_their_parents(["ubuntu"], tmp_path) == ["ubuntu", "debian"]


class TestAutodetect:
    def test_env_override(self, tmp_path: Path) -> None:
        profile = autodetect_operating_system(
            {"WSDEPS_OS": "arch:rolling"}, os_release=tmp_path / "none",
        )
        assert profile is not None
        assert profile.names == ("arch", "default")
        assert profile.versions == ("rolling", "default")

    def test_empty_env_means_unknown(self, tmp_path: Path) -> None:
        assert autodetect_operating_system({"WSDEPS_OS": ""}, os_release=tmp_path / "none") is None

    def test_from_os_release_with_parent_marker(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "etc/os-release", "ID=ubuntu\nVERSION_ID=\"22.04\"\n")
        _write(tmp_path / "etc/debian_version", "bookworm\n")
        profile = autodetect_operating_system({}, os_release=path, root=tmp_path)
        assert profile is not None
        assert profile.names == ("ubuntu", "debian", "default")
        assert profile.versions == ("22.04", "default")
        assert profile.host_manager == "apt-dpkg"
