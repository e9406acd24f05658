"""Plugins: external executables described by a ``plugin.yaml`` file."""

from __future__ import annotations

import os
import platform as _platform
import shutil
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .log import get_logger

CONFIG_FILE = "plugin.yaml"
XDG_DATA_HOME = "XDG_DATA_HOME"
PLUGINS_RELATIVE_DIR = Path(".trivy") / "plugins"

_OS_NAMES = {"linux": "linux", "darwin": "darwin", "win32": "windows", "cygwin": "windows"}
_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}


class PluginError(Exception):
    """A plugin could not be loaded, selected or run."""


def _runtime_os() -> str:
    for prefix, name in _OS_NAMES.items():
        if sys.platform.startswith(prefix):
            return name
    return sys.platform


def _runtime_arch() -> str:
    machine = _platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


@dataclass
class Selector:
    """The environment a platform entry applies to; empty fields match anything."""

    os: str = ""
    arch: str = ""


@dataclass
class Platform:
    """Where the executable of a plugin comes from and lives, for one environment."""

    selector: Selector | None = None
    uri: str = ""
    bin: str = ""


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _platform_from_dict(data: Any) -> Platform:
    if not isinstance(data, dict):
        raise ValueError(f"invalid platform entry: {data!r}")
    raw_selector = data.get("selector")
    selector = None
    if raw_selector is not None:
        if not isinstance(raw_selector, dict):
            raise ValueError(f"invalid selector: {raw_selector!r}")
        selector = Selector(os=_str(raw_selector, "os"), arch=_str(raw_selector, "arch"))
    return Platform(selector=selector, uri=_str(data, "uri"), bin=_str(data, "bin"))


@dataclass
class Plugin:
    """Metadata of an installed plugin."""

    name: str = ""
    repository: str = ""
    version: str = ""
    usage: str = ""
    description: str = ""
    platforms: list[Platform] = field(default_factory=list)
    # Overrides of the runtime environment, used to pin the selection.
    goos: str = ""
    goarch: str = ""

    @classmethod
    def _from_dict(cls, data: Any) -> Plugin:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("plugin metadata must be a mapping")
        platforms = data.get("platforms") or []
        if not isinstance(platforms, list):
            raise ValueError("'platforms' must be a list")
        return cls(
            name=_str(data, "name"),
            repository=_str(data, "repository"),
            version=_str(data, "version"),
            usage=_str(data, "usage"),
            description=_str(data, "description"),
            platforms=[_platform_from_dict(p) for p in platforms],
            goos=_str(data, "_goos"),
            goarch=_str(data, "_goarch"),
        )

    def select_platform(self) -> Platform:
        """Return the first platform whose selector matches the environment."""
        goos = self.goos or _runtime_os()
        goarch = self.goarch or _runtime_arch()
        for candidate in self.platforms:
            selector = candidate.selector
            if selector is None:
                return candidate
            if (not selector.os or selector.os == goos) and (not selector.arch or selector.arch == goarch):
                get_logger().debug("Platform found, os: %s, arch: %s", selector.os, selector.arch)
                return candidate
        raise PluginError("platform not found")

    def plugin_dir(self) -> Path:
        """Return the directory the plugin is installed in."""
        if not self.name:
            raise PluginError("'name' is empty")
        return plugins_dir() / self.name

    def run(self, args: Sequence[str] = ()) -> None:
        """Run the plugin's executable with the given arguments, sharing stdio and environment."""
        try:
            selected = self.select_platform()
        except PluginError as exc:
            raise PluginError(f"platform selection error: {exc}") from exc

        exec_file = plugins_dir() / self.name / selected.bin
        try:
            completed = subprocess.run(
                [str(exec_file), *args],
                stdin=sys.stdin,
                stdout=sys.stdout,
                stderr=sys.stderr,
                env=dict(os.environ),
                check=False,
            )
        except OSError as exc:
            raise PluginError(f"exit: {exc}") from exc
        if completed.returncode != 0:
            raise PluginError(f"plugin exec: exit status {completed.returncode}")


def plugins_dir() -> Path:
    """Return the directory holding all plugins."""
    data_home = os.environ.get(XDG_DATA_HOME, "")
    if data_home:
        return Path(data_home) / PLUGINS_RELATIVE_DIR
    return Path.home() / PLUGINS_RELATIVE_DIR


def load_metadata(directory: str | os.PathLike[str]) -> Plugin:
    """Read the plugin metadata from ``plugin.yaml`` in the directory."""
    file_path = Path(directory) / CONFIG_FILE
    try:
        text = file_path.read_text()
    except OSError as exc:
        raise PluginError(f"file open error: {exc}") from exc
    try:
        return Plugin._from_dict(yaml.safe_load(text))
    except (yaml.YAMLError, ValueError) as exc:
        raise PluginError(f"yaml decode error: {exc}") from exc


def load_all() -> list[Plugin]:
    """Load every installed plugin; broken ones are logged and skipped."""
    directory = plugins_dir()
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise PluginError(f"failed to read {directory}: {exc}") from exc

    plugins = []
    for entry in entries:
        if not entry.is_dir():
            continue
        try:
            plugins.append(load_metadata(entry))
        except PluginError as exc:
            get_logger().warning("plugin load error: %s", exc)
    return plugins


def is_installed(url: str) -> Plugin | None:
    """Return the installed plugin from the given repository, if any."""
    try:
        installed = load_all()
    except PluginError:
        return None
    return next((p for p in installed if p.repository == url), None)


def uninstall(name: str) -> None:
    """Remove the plugin's directory; a missing plugin is not an error."""
    target = plugins_dir() / name
    if target.exists() or target.is_symlink():
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()