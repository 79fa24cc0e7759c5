"""工作区定义加载与 ServiceContainer 测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

import wsdeps.core.config as cfgmod
from wsdeps.core.exceptions import ConfigError
from wsdeps.services.container import ServiceContainer, get_container, reset_container
from wsdeps.services.workspace import load_workspace

SOURCES = {
    "package_sets": [
        {
            "name": "base",
            "packages": ["tools/logger", "drivers/serial"],
            "dependencies": {"drivers/serial": ["tools/logger", "libudev1"]},
            "version_control": [
                {"tools/.*": {"type": "git", "url": "https://h/$PACKAGE.git"}},
                {"drivers/.*": "git:https://h/drivers/$PACKAGE_BASENAME"},
            ],
        },
        {
            "name": "hw",
            "packages": ["tools/udev"],
            "dependencies": {"drivers/serial": ["tools/logger"]},
            "version_control": {"tools/udev": "git:https://hw/udev"},
            "overrides": [{"drivers/.*": "local:/src/$PACKAGE_BASENAME"}],
        },
    ],
    "metapackages": {
        "drivers": {"packages": ["drivers/serial"], "weak": True},
        "everything": ["tools/logger", "drivers"],
    },
    "osdeps_overrides": {"libusb": {"package": "tools/udev", "force": True}},
    "osdeps_aliases": {"libudev1": "libudev"},
    "layout": ["drivers/serial"],
}

OSDEPS = {
    "libudev": {"ubuntu": "libudev-dev"},
    "libusb": {"ubuntu": "libusb-1.0-0-dev"},
}


def _dump(path: Path, data) -> Path:
    path.write_text(yaml.dump(data, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path: Path) -> cfgmod.Config:
    return cfgmod.Config(
        osdeps_files=[str(_dump(tmp_path / "default.osdeps", OSDEPS))],
        sources_file=str(_dump(tmp_path / "sources.yml", SOURCES)),
        operating_system="ubuntu:22.04",
    )


class TestLoadWorkspace:
    def test_full_definition(self, config: cfgmod.Config) -> None:
        ws = load_workspace(config.sources_file)
        assert [s.name for s in ws.sources] == ["base", "hw"]
        assert ws.source_packages == {"tools/logger", "drivers/serial", "tools/udev"}
        assert ws.dependencies_of("drivers/serial") == ["tools/logger", "libudev1"]
        assert ws.dependencies_of("tools/logger") == []
        meta = {m.name: m for m in ws.metapackages}
        assert meta["drivers"].weak_dependencies is True
        assert meta["everything"].packages == ["tools/logger", "drivers"]
        assert ws.osdeps_overrides == {"libusb": {"packages": ["tools/udev"], "force": True}}
        assert ws.osdeps_aliases == {"libudev1": "libudev"}
        assert ws.layout == ["drivers/serial"]
        assert ws.sources[1].overrides[0].pattern == "drivers/.*"

    def test_missing_file(self, tmp_path: Path) -> None:
        ws = load_workspace(tmp_path / "none.yml")
        assert ws.sources == []
        assert ws.source_packages == set()

    def test_duplicate_source(self, tmp_path: Path) -> None:
        path = _dump(tmp_path / "s.yml", {"package_sets": [{"name": "a"}, {"name": "a"}]})
        with pytest.raises(ConfigError, match="重复定义"):
            load_workspace(path)

    def test_source_without_name(self, tmp_path: Path) -> None:
        path = _dump(tmp_path / "s.yml", {"package_sets": [{"packages": ["x"]}]})
        with pytest.raises(ConfigError, match="第 1 个条目缺少 name"):
            load_workspace(path)

    def test_bad_metapackage(self, tmp_path: Path) -> None:
        path = _dump(tmp_path / "s.yml", {"metapackages": {"m": "x"}})
        with pytest.raises(ConfigError, match="元包 m"):
            load_workspace(path)


class TestServiceContainer:
    def test_lazy_loading(self, config: cfgmod.Config) -> None:
        c = ServiceContainer(config, env={})
        assert len(c._instances) == 0
        _ = c.vcs
        assert "vcs" in c._instances
        assert "workspace" in c._instances
        assert "osdeps" not in c._instances

    def test_shared_instances(self, config: cfgmod.Config) -> None:
        c = ServiceContainer(config, env={})
        assert c.osdeps is c.osdeps
        assert c.name_resolver.osdeps is c.osdeps
        assert c.installer.resolver is c.osdeps
        assert c.selection_graph() is not c.selection_graph()

    def test_osdeps_wiring(self, config: cfgmod.Config) -> None:
        c = ServiceContainer(config, env={})
        assert c.operating_system.names == ("ubuntu", "default")
        assert c.osdeps.os_package_manager == "apt-dpkg"
        assert c.installer.registry.host == "apt-dpkg"
        # 别名来自 sources 文件
        assert c.osdeps.resolve("libudev1")[0].packages == frozenset({"libudev-dev"})

    def test_operating_system_from_env(self, config: cfgmod.Config) -> None:
        config.operating_system = ""
        c = ServiceContainer(config, env={"WSDEPS_OS": "arch"})
        assert c.operating_system.names == ("arch", "default")
        assert c.osdeps.os_package_manager == "pacman"

    def test_explicit_package_manager(self, config: cfgmod.Config) -> None:
        config.os_package_manager = "pip"
        c = ServiceContainer(config, env={})
        assert c.osdeps.os_package_manager == "pip"

    def test_osdeps_overrides_applied(self, config: cfgmod.Config) -> None:
        c = ServiceContainer(config, env={})
        assert c.name_resolver.osdeps_overrides["libusb"]["packages"] == ["tools/udev"]

    def test_resolution_queue(self, config: cfgmod.Config) -> None:
        c = ServiceContainer(config, env={})
        result = c.resolution_queue().run(["drivers/serial"])
        assert set(result.source_packages) == {"drivers/serial", "tools/logger"}
        assert result.source_packages["drivers/serial"].to_dict() == {
            "type": "local", "url": "/src/serial",
        }
        assert set(result.osdeps) == {"libudev1"}
        assert result.excluded == {}

    def test_resolution_queue_mainline(self, config: cfgmod.Config) -> None:
        config.sources_file = str(_dump(Path(config.sources_file), {
            "package_sets": [
                {"name": "base", "packages": ["tools/logger"],
                 "version_control": {"tools/logger": "git:https://h/logger"}},
                {"name": "user", "overrides": {"tools/logger": {"branch": "dev"}}},
            ],
        }))
        c = ServiceContainer(config, env={})
        assert c.resolution_queue(mainline=True).run(["tools/logger"]).source_packages[
            "tools/logger"].options == {}
        assert c.resolution_queue().run(["tools/logger"]).source_packages[
            "tools/logger"].options == {"branch": "dev"}


class TestGlobalContainer:
    def test_singleton_uses_current_config(
        self, config: cfgmod.Config, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(cfgmod, "_current", config)
        reset_container()
        try:
            c = get_container()
            assert c is get_container()
            assert c.config is config
            reset_container()
            assert get_container() is not c
        finally:
            reset_container()
