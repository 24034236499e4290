"""Immutable build configuration.

The configuration is read once per invocation from an optional YAML file and
frozen; every task receives the same :class:`BuildConfig` value. Paths in the
file are relative to the project root (the working directory by default).

Example ``configs/assets.yaml``::

    paths:
      static_root: dist
      styles:
        src: "assets/styles/**/*.{css,scss}"
        concat: main.css
      scripts:
        src:                      # explicit order
          - assets/scripts/vendor/*.js
          - "assets/scripts/**/*.{js,coffee}"
    server:
      script: server.py
      url: http://localhost:3000
    proxy:
      port: 5000
"""

from __future__ import annotations

import dataclasses
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Optional

import yaml

from .errors import ConfigError
from .globs import as_list

DEFAULT_CONFIG_PATH = "configs/assets.yaml"

GROUP_NAMES = ("styles", "scripts", "images", "fonts")

# Browsers to support; drives which vendor prefixes the styles task adds.
DEFAULT_BROWSERS = (
    "ie >= 10",
    "ie_mob >= 10",
    "ff >= 30",
    "chrome >= 34",
    "safari >= 7",
    "opera >= 23",
    "ios >= 7",
    "android >= 4.4",
    "bb >= 10",
)

# Files that restart the application server when modified.
DEFAULT_APP_FILES = (
    "app.py",
    "api/**/*.py",
    "routes/**/*.py",
    "models/**/*.py",
)

DEFAULT_COFFEE_COMMAND = ("coffee", "--compile", "--print", "--bare")


class BuildMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass(frozen=True)
class AssetGroup:
    name: str
    src: tuple[str, ...]
    dest: str
    concat: Optional[str] = None

    def dest_dir(self, root: Path) -> Path:
        return root / self.dest

    def concat_path(self, root: Path) -> Optional[Path]:
        if not self.concat:
            return None
        return self.dest_dir(root) / self.concat


@dataclass(frozen=True)
class ImageOptions:
    progressive: bool = True
    interlaced: bool = True
    jpeg_quality: Optional[int] = None

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


def _default_group(name: str, static_root: str) -> AssetGroup:
    src = {
        "styles": "assets/styles/**/*.{css,scss}",
        "scripts": "assets/scripts/**/*.{js,coffee}",
        "images": "assets/images/**/*",
        "fonts": "assets/fonts/**/*",
    }[name]
    concat = {"styles": "main.css", "scripts": "main.js"}.get(name)
    return AssetGroup(name=name, src=(src,), dest=f"{static_root}/{name}", concat=concat)


@dataclass(frozen=True)
class BuildConfig:
    root: Path
    mode: BuildMode = BuildMode.DEVELOPMENT
    static_root: str = "dist"
    styles: AssetGroup = field(default_factory=lambda: _default_group("styles", "dist"))
    scripts: AssetGroup = field(default_factory=lambda: _default_group("scripts", "dist"))
    images: AssetGroup = field(default_factory=lambda: _default_group("images", "dist"))
    fonts: AssetGroup = field(default_factory=lambda: _default_group("fonts", "dist"))
    app_files: tuple[str, ...] = DEFAULT_APP_FILES
    server_script: str = "server.py"
    server_command: tuple[str, ...] = ()
    server_url: str = "http://localhost:3000"
    env_var: str = "APP_ENV"
    proxy_port: int = 5000
    open_browser: bool = False
    browsers: tuple[str, ...] = DEFAULT_BROWSERS
    cache_dir: str = ".assetcache"
    image_options: ImageOptions = field(default_factory=ImageOptions)
    coffee_command: tuple[str, ...] = DEFAULT_COFFEE_COMMAND
    sourcemaps: str = "external"

    @property
    def production(self) -> bool:
        return self.mode is BuildMode.PRODUCTION

    @property
    def static_dir(self) -> Path:
        return self.root / self.static_root

    @property
    def cache_path(self) -> Path:
        return self.root / self.cache_dir

    @property
    def groups(self) -> tuple[AssetGroup, ...]:
        return (self.styles, self.scripts, self.images, self.fonts)

    def group(self, name: str) -> AssetGroup:
        if name not in GROUP_NAMES:
            raise KeyError(f"Unknown asset group: {name}")
        return getattr(self, name)

    def server_argv(self) -> list[str]:
        """Command that launches the application server."""
        if self.server_command:
            return list(self.server_command)
        return [sys.executable, self.server_script]

    def restart_globs(self) -> tuple[str, ...]:
        return tuple(self.app_files) + (self.server_script,)

    def with_mode(self, mode: BuildMode) -> "BuildConfig":
        return dataclasses.replace(self, mode=mode)


def _check_disjoint(groups: tuple[AssetGroup, ...]) -> None:
    for i, a in enumerate(groups):
        pa = PurePosixPath(a.dest)
        for b in groups[i + 1 :]:
            pb = PurePosixPath(b.dest)
            if pa == pb or pa in pb.parents or pb in pa.parents:
                raise ConfigError(
                    f"Asset groups '{a.name}' and '{b.name}' share a destination",
                    metadata={"dest": [a.dest, b.dest]},
                )


def _parse_group(name: str, raw: Any, static_root: str) -> AssetGroup:
    default = _default_group(name, static_root)
    if raw is None:
        return default
    if not isinstance(raw, dict):
        raise ConfigError(f"paths.{name} must be a mapping")
    src = raw.get("src")
    return AssetGroup(
        name=name,
        src=tuple(as_list(src)) if src else default.src,
        dest=str(raw.get("dest", default.dest)),
        concat=raw.get("concat", default.concat),
    )


def build_config(data: dict, root: Path, production: bool = False) -> BuildConfig:
    """Build a frozen config from a parsed YAML mapping."""
    paths = data.get("paths") or {}
    unknown = set(paths) - set(GROUP_NAMES) - {"static_root"}
    if unknown:
        raise ConfigError(f"Unknown asset groups: {', '.join(sorted(unknown))}")
    static_root = str(paths.get("static_root", "dist")).rstrip("/")
    groups = {name: _parse_group(name, paths.get(name), static_root) for name in GROUP_NAMES}
    _check_disjoint(tuple(groups.values()))

    server = data.get("server") or {}
    proxy = data.get("proxy") or {}
    images = data.get("images") or {}
    compilers = data.get("compilers") or {}

    sourcemaps = data.get("sourcemaps", "external")
    if sourcemaps not in ("external", "inline"):
        raise ConfigError(f"sourcemaps must be 'external' or 'inline', got {sourcemaps!r}")

    try:
        return BuildConfig(
            root=Path(root),
            mode=BuildMode.PRODUCTION if production else BuildMode.DEVELOPMENT,
            static_root=static_root,
            app_files=tuple(as_list(data.get("app_files", DEFAULT_APP_FILES))),
            server_script=str(server.get("script", "server.py")),
            server_command=tuple(as_list(server.get("command") or ())),
            server_url=str(server.get("url", "http://localhost:3000")),
            env_var=str(server.get("env_var", "APP_ENV")),
            proxy_port=int(proxy.get("port", 5000)),
            open_browser=bool(proxy.get("open_browser", False)),
            browsers=tuple(as_list(data.get("browsers", DEFAULT_BROWSERS))),
            cache_dir=str(data.get("cache_dir", ".assetcache")),
            image_options=ImageOptions(
                progressive=bool(images.get("progressive", True)),
                interlaced=bool(images.get("interlaced", True)),
                jpeg_quality=images.get("jpeg_quality"),
            ),
            coffee_command=tuple(as_list(compilers.get("coffee", DEFAULT_COFFEE_COMMAND))),
            sourcemaps=sourcemaps,
            **groups,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(
    path: str | Path | None = None,
    production: bool = False,
    root: str | Path | None = None,
) -> BuildConfig:
    p = Path(path or os.getenv("ASSETPIPE_CONFIG") or DEFAULT_CONFIG_PATH)
    root = Path(root) if root is not None else Path.cwd()
    if not p.is_absolute():
        p = root / p
    data: dict = {}
    if p.exists():
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must hold a mapping: {p}")
    return build_config(data, root=root, production=production)
