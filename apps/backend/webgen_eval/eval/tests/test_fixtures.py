import pytest

from webgen_eval.eval.driver import DriverOutput
from webgen_eval.eval.fixtures import Fixture, normalize_path
from webgen_eval.eval.scenarios import default_registry


@pytest.mark.parametrize("raw", ["index.html", "./index.html", "/index.html", "\\index.html"])
def test_normalize_path_variants(raw):
    assert normalize_path(raw) == "/index.html"


def test_normalize_path_rejects_empty():
    for raw in ("", "  ", "/", "./"):
        with pytest.raises(ValueError):
            normalize_path(raw)


def test_fixture_is_a_fresh_copy_per_execution():
    scenario = default_registry().by_id("ui-hamburger-menu")
    first = Fixture.from_scenario(scenario)
    second = Fixture.from_scenario(scenario)
    final = first.apply(DriverOutput(modified_files={"/index.html": "changed"}))
    assert final["/index.html"] == "changed"
    assert second.files()["/index.html"] == scenario.setup_files["/index.html"]
    assert first.files()["/index.html"] == scenario.setup_files["/index.html"]


def test_apply_overlays_modified_and_created_files():
    fixture = Fixture({"index.html": "<p>a</p>", "/styles.css": "a{}"})
    output = DriverOutput(
        modified_files={"./index.html": "<p>b</p>"},
        created_files={"app.js": "let x = 1;"},
    )
    final = fixture.apply(output)
    assert list(final) == ["/index.html", "/styles.css", "/app.js"]
    assert final["/index.html"] == "<p>b</p>"
    assert "/app.js" not in fixture.files()


def test_files_view_is_read_only():
    view = Fixture({"/a.css": ""}).files()
    with pytest.raises(TypeError):
        view["/b.css"] = ""  # type: ignore[index]
