import dataclasses
from pathlib import Path

import pytest

from assetpipe.orchestrator.config import BuildMode, load_config
from assetpipe.orchestrator.errors import ConfigError
from helpers import write


def test_missing_file_yields_defaults(project: Path) -> None:
    config = load_config("configs/missing.yaml", root=project)
    assert config.mode is BuildMode.DEVELOPMENT
    assert config.static_root == "dist"
    assert config.styles.concat == "main.css"
    assert config.scripts.dest == "dist/scripts"
    assert config.images.concat is None
    assert config.proxy_port == 5000
    assert "ie >= 10" in config.browsers
    assert config.server_url == "http://localhost:3000"


def test_yaml_overrides_and_production_flag(project: Path) -> None:
    write(
        project,
        "configs/assets.yaml",
        "paths:\n"
        "  static_root: public\n"
        "  scripts:\n"
        "    src: [a.js, 'lib/*.js']\n"
        "    concat: app.js\n"
        "proxy:\n"
        "  port: 6000\n"
        "browsers: ['chrome >= 60']\n",
    )
    config = load_config(root=project, production=True)
    assert config.production
    assert config.static_dir == project / "public"
    assert config.styles.dest == "public/styles"
    assert config.scripts.src == ("a.js", "lib/*.js")
    assert config.scripts.concat_path(project) == project / "public/scripts/app.js"
    assert config.proxy_port == 6000
    assert config.browsers == ("chrome >= 60",)


def test_env_var_names_config_file(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write(project, "custom.yaml", "server:\n  env_var: NODE_ENV\n")
    monkeypatch.setenv("ASSETPIPE_CONFIG", "custom.yaml")
    assert load_config(root=project).env_var == "NODE_ENV"


def test_overlapping_destinations_rejected(make_config) -> None:
    with pytest.raises(ConfigError):
        make_config(paths={"styles": {"dest": "dist/assets"}, "scripts": {"dest": "dist/assets/js"}})


def test_unknown_group_rejected(make_config) -> None:
    with pytest.raises(ConfigError):
        make_config(paths={"videos": {"src": "a/*"}})


def test_invalid_sourcemap_style_rejected(make_config) -> None:
    with pytest.raises(ConfigError):
        make_config(sourcemaps="sidecar")


def test_config_is_immutable(make_config) -> None:
    config = make_config()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.mode = BuildMode.PRODUCTION  # type: ignore[misc]
    assert config.with_mode(BuildMode.PRODUCTION).production
    assert not config.production


def test_server_command_defaults_to_python_script(make_config) -> None:
    config = make_config(server={"script": "server.py"})
    argv = config.server_argv()
    assert argv[-1] == "server.py"
    assert config.restart_globs()[-1] == "server.py"
