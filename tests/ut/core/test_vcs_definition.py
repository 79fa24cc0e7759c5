"""VCS 定义与声明源测试"""

from __future__ import annotations

import pytest

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.vcs.definition import (
    VcsSpec,
    expand_placeholders,
    normalize_fragment,
)
from wsdeps.core.vcs.source import DeclaringSource, VcsEntry, normalize_vcs_list


class TestNormalizeFragment:
    @pytest.mark.parametrize(("raw", "expected"), [
        ("none", {"type": "none"}),
        ("git:https://h/x.git", {"type": "git", "url": "https://h/x.git"}),
        ("/src/x", {"type": "local", "url": "/src/x"}),
        ({"type": "svn", "url": "u"}, {"type": "svn", "url": "u"}),
        (None, {}),
    ])
    def test_forms(self, raw, expected) -> None:
        assert normalize_fragment(raw) == expected

    def test_invalid(self) -> None:
        with pytest.raises(ConfigError):
            normalize_fragment(42)

    def test_placeholders(self) -> None:
        fragment = {"url": "https://h/$PACKAGE_BASENAME.git", "dir": "$PACKAGE", "depth": 1}
        assert expand_placeholders(fragment, "drivers/can") == {
            "url": "https://h/can.git", "dir": "drivers/can", "depth": 1,
        }


class TestVcsSpec:
    def test_from_raw(self) -> None:
        spec = VcsSpec.from_raw({"type": "git", "url": "u", "branch": "main"}, source="base")
        assert spec.type == "git"
        assert spec.url == "u"
        assert spec.options == {"branch": "main"}
        assert spec.to_dict() == {"type": "git", "url": "u", "branch": "main"}
        assert [h.source for h in spec.history] == ["base"]
        assert str(spec) == "git:u (branch=main)"

    def test_missing_type(self) -> None:
        with pytest.raises(ConfigError, match="type"):
            VcsSpec.from_raw({"url": "u"})

    def test_missing_url(self) -> None:
        with pytest.raises(ConfigError, match="url"):
            VcsSpec.from_raw({"type": "git"})

    def test_unknown_type(self) -> None:
        with pytest.raises(ConfigError, match="未知的版本控制类型"):
            VcsSpec.from_raw({"type": "bzr", "url": "u"})

    def test_none_and_local(self) -> None:
        none = VcsSpec.none()
        assert none.is_none and not none.needs_import
        assert str(none) == "none"
        local = VcsSpec.from_raw("/src/x")
        assert local.is_local and not local.needs_import
        assert VcsSpec.from_raw("git:u").needs_import

    def test_update_merges(self) -> None:
        spec = VcsSpec.from_raw({"type": "git", "url": "u", "branch": "main", "tag": "v1"}, "base")
        updated = spec.update({"branch": "dev"}, "local")
        assert updated.to_dict() == {"type": "git", "url": "u", "branch": "dev", "tag": "v1"}
        assert [h.source for h in updated.history] == ["base", "local"]
        assert spec.options["branch"] == "main"

    def test_update_type_change_replaces(self) -> None:
        spec = VcsSpec.from_raw({"type": "git", "url": "u", "branch": "main"}, "base")
        updated = spec.update({"type": "svn", "url": "s"}, "local")
        assert updated.to_dict() == {"type": "svn", "url": "s"}
        assert [h.source for h in updated.history] == ["local"]

    def test_update_to_invalid(self) -> None:
        spec = VcsSpec.from_raw("git:u")
        with pytest.raises(ConfigError):
            spec.update({"type": "archive"})

    @pytest.mark.parametrize("url", [
        "https://github.com/org/repo.git",
        "git@github.com:org/repo",
        "ssh://git@github.com/org/repo/",
        "github.com/org/repo",
    ])
    def test_same_repository(self, url: str) -> None:
        reference = VcsSpec("git", "https://github.com/org/repo")
        spec = VcsSpec.from_raw({"type": "git", "url": url, "branch": "x"})
        assert spec == reference
        assert hash(spec) == hash(reference)
        assert spec.repository_id == "git:github.com/org/repo"

    def test_port_is_kept(self) -> None:
        assert VcsSpec("git", "https://host:8080/x.git").repository_id == "git:host:8080/x"

    def test_different_repositories(self) -> None:
        assert VcsSpec("git", "https://h/a") != VcsSpec("git", "https://h/b")
        assert VcsSpec("git", "https://h/a") != VcsSpec("hg", "https://h/a")
        assert len({VcsSpec("git", "https://h/a.git"), VcsSpec("git", "git@h:a")}) == 1


class TestVcsList:
    def test_mapping_form(self) -> None:
        entries = normalize_vcs_list({"a": "none", "b/.*": "git:u"}, "version_control")
        assert [(e.pattern, e.fragment) for e in entries] == [("a", "none"), ("b/.*", "git:u")]

    def test_list_forms(self) -> None:
        raw = [
            {"a": "none"},
            {"b": None, "type": "git", "url": "u"},
        ]
        entries = normalize_vcs_list(raw, "overrides")
        assert entries[0].fragment == "none"
        assert entries[1].pattern == "b"
        assert entries[1].fragment == {"type": "git", "url": "u"}

    def test_ambiguous_entry(self) -> None:
        with pytest.raises(ConfigError, match="第 2 个条目"):
            normalize_vcs_list([{"a": "none"}, {"b": None, "c": None}], "overrides", "base")

    def test_wrong_type(self) -> None:
        with pytest.raises(ConfigError, match="version_control"):
            normalize_vcs_list("git:u", "version_control")

    def test_pattern_matching(self) -> None:
        assert VcsEntry("drivers/can", None).matches("drivers/can")
        assert not VcsEntry("drivers", None).matches("drivers/can")
        assert VcsEntry("drivers/.*", None).matches("drivers/can")
        assert not VcsEntry("can", None).matches("drivers/can")
        assert not VcsEntry("dri.*", None).matches("tools/drivers")

    def test_invalid_regex(self) -> None:
        with pytest.raises(ConfigError, match="模式"):
            VcsEntry("drivers/(", None)


class TestDeclaringSource:
    def test_first_match(self) -> None:
        source = DeclaringSource.from_dict("base", {
            "packages": ["tools/gui"],
            "version_control": [{"tools/gui": "none"}, {"tools/.*": "git:u"}],
        })
        assert source.defines("tools/gui")
        assert source.find_entry("version_control", "tools/gui").fragment == "none"
        assert source.find_entry("version_control", "tools/cli").fragment == "git:u"
        assert source.find_entry("overrides", "tools/gui") is None

    def test_packages_must_be_list(self) -> None:
        with pytest.raises(ConfigError, match="packages"):
            DeclaringSource.from_dict("base", {"packages": "a"})

    def test_unknown_section(self) -> None:
        with pytest.raises(ValueError):
            DeclaringSource("base").find_entry("remotes", "a")
