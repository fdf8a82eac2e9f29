from sitebuilder.core.artifacts import ArtifactStore, count_pages, iter_pages
from sitebuilder.core.models import StyleGuide, Wireframe, WireframeComponent
from sitebuilder.core.state import BuilderState
from sitebuilder.generation.mock_service import default_style_tokens

from conftest import build_sitemap


def _store(**state_fields):
    state = BuilderState(sitemap=build_sitemap(), **state_fields)
    return state, ArtifactStore(state)


def _ids(state):
    return [p.id for p, _, _ in iter_pages(state.sitemap.pages)]


def test_remove_page_drops_whole_subtree():
    state, store = _store()
    before = count_pages(state.sitemap.pages)

    result = store.remove_page("about")

    assert result.ok
    assert sorted(result.affected_ids) == ["about", "careers", "jobs", "team"]
    assert count_pages(state.sitemap.pages) == before - 4
    assert store.find_page("jobs") is None


def test_move_page_keeps_single_occurrence():
    state, store = _store()

    result = store.move_page("careers", "contact")

    assert result.ok
    assert _ids(state).count("careers") == 1
    moved = store.find_page("careers")
    assert moved.parent_id == "contact"
    assert [c.id for c in store.find_page("contact").children] == ["careers"]
    assert store.find_page("jobs") is not None


def test_move_page_reorders_siblings():
    state, store = _store()

    assert store.move_page("contact", None, 1).ok

    assert [p.id for p in state.sitemap.pages] == ["contact", "home", "about"]
    assert [p.order for p in state.sitemap.pages] == [1, 2, 3]


def test_move_page_beneath_descendant_is_rejected():
    state, store = _store()
    result = store.move_page("about", "jobs")
    assert not result.ok
    assert result.reason == "invalid_target"
    assert _ids(state).count("about") == 1


def test_missing_targets_report_not_found():
    _, store = _store()
    assert store.remove_page("nope").reason == "not_found"
    assert store.update_sitemap_page("nope", {"title": "x"}).reason == "not_found"
    assert store.move_page("home", "nope").reason == "not_found"
    assert store.add_page("nope").reason == "not_found"


def test_operations_without_sitemap():
    store = ArtifactStore(BuilderState())
    assert store.add_page().reason == "no_sitemap"
    assert store.remove_page("home").reason == "no_sitemap"
    assert not store.validate_sitemap().is_valid


def test_update_page_ignores_structural_fields():
    _, store = _store()
    result = store.update_sitemap_page("team", {"title": "People", "id": "hijack", "parent_id": None})

    page = store.find_page("team")
    assert result.ok
    assert page.title == "People"
    assert page.parent_id == "about"
    assert store.find_page("hijack") is None


def test_update_page_rejects_bad_values_without_changes():
    state, store = _store()
    home = store.find_page("home")

    wrong_type = store.update_sitemap_page("home", {"priority": "high", "title": "Start"})
    assert wrong_type.reason == "invalid_target"
    assert "priority" in wrong_type.detail
    assert home.priority == 10
    assert home.title == "Home"

    assert store.update_sitemap_page("home", {"priority": 0}).reason == "invalid_target"
    assert store.update_sitemap_page("contact", {"title": None}).reason == "invalid_target"
    assert store.find_page("contact").title == "Contact"

    assert store.validate_sitemap().is_valid
    assert store.update_sitemap_page("home", {"priority": 9}).ok
    assert state.sitemap.statistics.average_priority > 0


def test_add_page_with_out_of_range_priority_is_rejected():
    state, store = _store()
    before = count_pages(state.sitemap.pages)

    result = store.add_page("about", priority=99)

    assert result.reason == "invalid_target"
    assert count_pages(state.sitemap.pages) == before
    assert [c.id for c in store.find_page("about").children] == ["team", "careers"]


def test_add_page_generates_unique_paths():
    state, store = _store()
    first = store.add_page()
    second = store.add_page()
    child = store.add_page("about", title="History")

    assert store.find_page(first.target_id).path == "/new-page"
    assert store.find_page(second.target_id).path == "/new-page-2"
    added = store.find_page(child.target_id)
    assert added.path == "/about/new-page"
    assert added.parent_id == "about"
    assert added.title == "History"
    assert state.sitemap.statistics.total_pages == 9


def test_validate_sitemap_flags_duplicates_and_orphans():
    state, store = _store()
    assert store.validate_sitemap().is_valid

    store.find_page("contact").path = "/about"
    store.find_page("team").parent_id = "ghost"
    result = store.validate_sitemap()

    codes = {issue.code for issue in result.errors}
    assert "DUPLICATE_PATH" in codes
    assert "ORPHANED_PAGE" in codes
    assert not result.is_valid
    assert result.statistics.orphaned_pages == 1
    assert result.statistics.max_depth == 3


def test_wireframe_component_update_and_orphans():
    state, store = _store()
    store.set_wireframe("home", Wireframe(
        name="Home",
        components=[WireframeComponent(id="hero", name="Hero", props={"heading": "Hi"})],
    ))
    store.set_wireframe("gone", Wireframe(name="Gone"))

    result = store.update_wireframe_component("home", "hero", {"props": {"cta": "Buy"}, "id": "x"})
    hero = store.find_component("home", "hero")
    assert result.ok
    assert hero.props == {"heading": "Hi", "cta": "Buy"}
    assert store.update_wireframe_component("home", "missing", {}).reason == "not_found"
    assert store.update_wireframe_component("home", "hero", {"name": None}).reason == "invalid_target"
    assert store.update_wireframe_component("home", "hero", {"category": "bogus"}).reason == "invalid_target"
    assert hero.name == "Hero"
    assert hero.category == "layout"

    assert store.orphaned_wireframes() == ["gone"]
    assert store.validate_wireframe("gone").warnings[0]["type"] == "orphaned-wireframe"
    assert store.delete_wireframe("gone").ok
    assert store.delete_wireframe("gone").reason == "not_found"


def test_style_token_edits():
    state, store = _store()
    assert store.update_color("primary", "500", "#000000").reason == "no_style_guide"

    store.set_style_guide(StyleGuide(name="Acme", **default_style_tokens()))
    assert store.update_color("primary", "500", "#123456").ok
    assert store.update_color("error", None, "#ff0000").ok
    assert store.update_color("chartreuse", "1", "#fff").reason == "invalid_target"
    assert store.update_typography("font_size.base", "18px").ok
    assert store.update_typography("bogus.base", "1").reason == "invalid_target"

    guide = state.style_guide
    assert guide.color_palette.primary["500"] == "#123456"
    assert guide.color_palette.error == "#ff0000"
    assert guide.typography.font_size["base"] == "18px"
    assert store.validate_style_guide().is_valid


def test_style_validation_warnings():
    state, store = _store()
    store.set_style_guide(StyleGuide(name="Bare"))
    store.update_spacing("1", "1rem")
    store.update_spacing("2", "0.5rem")

    warnings = store.validate_style_guide().warnings
    assert "Missing base font size" in warnings
    assert "Missing primary 500 color" in warnings
    assert "Inconsistent spacing scale detected" in warnings
