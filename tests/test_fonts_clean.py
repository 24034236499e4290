import io
from pathlib import Path

import pytest
from PIL import Image

from assetpipe.orchestrator.errors import ConfigError
from assetpipe.orchestrator.registry import run_default
from assetpipe.tasks.clean import clean
from assetpipe.tasks.fonts import fonts
from helpers import tree, write


def _gif_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("P", (4, 4), 1).save(buf, "GIF")
    return buf.getvalue()


def test_fonts_are_copied_unchanged(project: Path, make_config) -> None:
    write(project, "assets/fonts/icons/glyphs.woff", b"wOFF\x00\x01")
    result = fonts(make_config())
    out = project / "dist/fonts/icons/glyphs.woff"
    assert out.read_bytes() == b"wOFF\x00\x01"
    assert result.events == ["copy:assets/fonts/icons/glyphs.woff"]
    assert result.size == 6


def test_clean_removes_static_root(project: Path, make_config) -> None:
    write(project, "dist/styles/old.css", "a{}")
    result = clean(make_config())
    assert not (project / "dist").exists()
    assert result.events == ["deleted:dist"]
    assert clean(make_config()).events == []


@pytest.mark.parametrize("static_root", ["..", "."])
def test_clean_refuses_paths_outside_project(project: Path, make_config, static_root: str) -> None:
    with pytest.raises(ConfigError):
        clean(make_config(paths={"static_root": static_root}))
    assert project.exists()


def test_default_build_in_production(project: Path, make_config) -> None:
    write(project, "assets/styles/site.scss", "$w: 10px;\n.box {\n  width: $w;\n}\n")
    write(project, "assets/scripts/app.js", "var app = {};\n")
    write(project, "assets/images/pixel.gif", _gif_bytes())
    write(project, "assets/fonts/body.ttf", b"\x00\x01\x00\x00")
    write(project, "dist/stale/leftover.txt", "old")

    result = run_default(make_config(production=True))

    assert tree(project / "dist") == {
        "styles/main.css",
        "scripts/main.js",
        "images/pixel.gif",
        "fonts/body.ttf",
    }
    assert result.events[0] == "clean.deleted:dist"
    assert "styles.compile:assets/styles/site.scss" in result.events
    assert "fonts.copy:assets/fonts/body.ttf" in result.events
