from core.filters import DashboardFilters, normalize_filters


def test_missing_selection_means_all_sellers() -> None:
    f = normalize_filters({}, available_sellers=["A", "B"])
    assert f == DashboardFilters(selected_sellers=["A", "B"], top_n=15)


def test_explicit_empty_selection_selects_nothing() -> None:
    f = normalize_filters({"selected_sellers": []}, available_sellers=["A", "B"])
    assert f.selected_sellers == []


def test_selection_is_deduplicated_and_stringified() -> None:
    f = normalize_filters({"selected_sellers": ["A", None, "A", 7]})
    assert f.selected_sellers == ["A", "7"]


def test_top_n_is_clamped() -> None:
    assert normalize_filters({"top_n": "x"}).top_n == 15
    assert normalize_filters({"top_n": 0}).top_n == 1
    assert normalize_filters({"top_n": 1000}).top_n == 200
