import pytest

from assetpipe.transforms.prefixer import parse_browsers, prefix_css

SAFARI_7 = ("safari >= 7",)


def test_parse_browsers_keeps_oldest_version_per_browser() -> None:
    targets = parse_browsers(["ie >= 10", "ff >= 30", "ie > 11", "android >= 4.4"])
    assert targets == {"ie": (10,), "firefox": (30,), "android": (4, 4)}


def test_parse_browsers_rejects_unknown_syntax() -> None:
    with pytest.raises(ValueError):
        parse_browsers(["latest chrome"])


def test_transform_gets_webkit_prefix_before_standard() -> None:
    css = "a {\n  transform: rotate(1deg);\n}\n"
    out, origins = prefix_css(css, SAFARI_7)
    assert out == "a {\n  -webkit-transform: rotate(1deg);\n  transform: rotate(1deg);\n}\n"
    # the inserted line maps back to the declaration it was derived from
    assert origins == [0, 1, 1, 2, 3]


def test_display_flex_for_old_ie() -> None:
    out, _ = prefix_css("a { display: flex; }", ("ie >= 10",))
    assert "display: -ms-flexbox;" in out
    assert out.index("-ms-flexbox") < out.index("display: flex")


def test_modern_browsers_leave_css_untouched() -> None:
    css = "a {\n  transform: none;\n  display: flex;\n}\n"
    out, origins = prefix_css(css, ("chrome >= 100",))
    assert out == css
    assert origins == [0, 1, 2, 3, 4]


def test_prefixing_is_idempotent() -> None:
    css = "a {\n  transform: scale(2);\n  display: flex;\n}\n"
    browsers = ("safari >= 7", "ie >= 10")
    once, _ = prefix_css(css, browsers)
    twice, _ = prefix_css(once, browsers)
    assert twice == once


def test_keyframes_duplicated_with_webkit_prefix() -> None:
    css = (
        "@keyframes spin {\n"
        "  from { transform: rotate(0); }\n"
        "  to { transform: rotate(360deg); }\n"
        "}\n"
    )
    out, origins = prefix_css(css, SAFARI_7)
    assert out.index("@-webkit-keyframes spin") < out.index("@keyframes spin")
    assert out.count("@-webkit-keyframes") == 1
    assert "-webkit-transform: rotate(360deg);" in out
    assert len(origins) == out.count("\n") + 1
    again, _ = prefix_css(out, SAFARI_7)
    assert again.count("@-webkit-keyframes") == 1
