# tests/unit/test_routing.py
from __future__ import annotations

import pytest

from image_recognition.core.pipeline.errors import ConfigurationError, RoutingConfigError
from image_recognition.core.pipeline.routing import RoutingTable, normalize_folder
from image_recognition.schemas.models import ProviderRoute
from tests.utils import make_settings


def _r(provider: str, model: str) -> ProviderRoute:
    return ProviderRoute(provider=provider, model=model)


@pytest.fixture
def table() -> RoutingTable:
    return RoutingTable(
        [
            ("/Demo Zone/Images", [_r("clarifai", "general")]),
            ("/Demo Zone/Images/Food", [_r("clarifai", "food")]),
            ("/Demo Zone/Images/Travel/", [_r("clarifai", "travel"), _r("google", "landmarks")]),
        ]
    )


def test_longest_prefix_wins(table: RoutingTable):
    assert table.route("/Demo Zone/Images/Food/Fruit") == [_r("clarifai", "food")]
    assert table.route("/Demo Zone/Images/Food") == [_r("clarifai", "food")]
    assert table.route("/Demo Zone/Images/Cars") == [_r("clarifai", "general")]


def test_prefix_matches_whole_segments_only(table: RoutingTable):
    assert table.route("/Demo Zone/Images/Foodstuff") == [_r("clarifai", "general")]
    assert table.route("/Demo Zone/ImagesArchive") == []


def test_no_match_returns_empty_list(table: RoutingTable):
    assert table.route("/Other Zone/Images") == []


def test_lookup_normalizes_folder(table: RoutingTable):
    assert table.route("Demo Zone//Images/Travel/Beach/") == [_r("clarifai", "travel"), _r("google", "landmarks")]
    assert table.route("\\Demo Zone\\Images\\Food") == [_r("clarifai", "food")]


def test_matching_is_case_sensitive(table: RoutingTable):
    assert table.route("/demo zone/images/food") == []


def test_root_entry_matches_everything():
    t = RoutingTable([("/", [_r("mock", "any")])])
    assert t.route("/anything/at/all") == [_r("mock", "any")]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", "/"),
        ("/", "/"),
        ("a/b/", "/a/b"),
        ("//a///b", "/a/b"),
        (" /a/b ", "/a/b"),
    ],
)
def test_normalize_folder(raw: str, expected: str):
    assert normalize_folder(raw) == expected


def test_duplicate_normalized_folders_are_rejected():
    with pytest.raises(RoutingConfigError):
        RoutingTable([("/A/B", [_r("x", "m")]), ("/A/B/", [_r("x", "n")])])
    assert issubclass(RoutingConfigError, ConfigurationError)


def test_duplicate_routes_collapse_and_providers_listed_in_order():
    t = RoutingTable([("/A", [_r("b", "m"), _r("a", "m"), _r("b", "m")]), ("/C", [_r("c", "m"), _r("a", "x")])])
    assert t.route("/A") == [_r("b", "m"), _r("a", "m")]
    assert t.providers() == ["b", "a", "c"]
    assert len(t) == 2


def test_from_settings_drops_disabled_providers():
    settings = make_settings(
        providers=[
            {"name": "general", "kind": "mock", "field": "cf_tags"},
            {"name": "wedding", "kind": "mock", "field": "cf_tags", "enabled": False},
        ]
    )
    table = RoutingTable.from_settings(settings)
    assert table.route("/Demo Zone/Images/Wedding/2024") == [_r("general", "general")]
    assert table.providers() == ["general"]
