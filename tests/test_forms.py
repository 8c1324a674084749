"""
Tests for decoding the admin editor form.
"""
import pytest

from cockpit.forms import unflatten
from cockpit.records import sanitize


@pytest.mark.unit
class TestUnflatten:

    def test_nested_lists_and_dicts(self):
        draft = unflatten([
            ("name", "Acme"),
            ("kpiPeriods.0.label", "Mai"),
            ("kpiPeriods.0.kpis.1.label", "Calls"),
            ("kpiPeriods.0.kpis.0.label", "Visits"),
            ("kpiPeriods.0.monthlyHighlights.0", "Up"),
            ("ecommerce.revenue", "42k"),
        ])
        assert draft == {
            "name": "Acme",
            "kpiPeriods": [{
                "label": "Mai",
                "kpis": [{"label": "Visits"}, {"label": "Calls"}],
                "monthlyHighlights": ["Up"],
            }],
            "ecommerce": {"revenue": "42k"},
        }

    def test_gaps_are_closed_in_numeric_order(self):
        draft = unflatten([("items.10", "c"), ("items.2", "b"), ("items.0", "a")])
        assert draft == {"items": ["a", "b", "c"]}

    def test_empty_names_are_ignored(self):
        assert unflatten([("", "x"), (".", "y")]) == {}

    def test_unchecked_toggle_means_disabled(self):
        draft = unflatten([
            ("id", "c1"),
            ("ecommerce.revenue", "42k"),
            ("ecommercePeriods.0.label", "Mai"),
        ])
        record = sanitize(draft, "c1")
        assert "ecommerce" not in record
        assert "ecommercePeriods" not in record

    def test_non_ascii_digits_are_plain_keys(self):
        draft = unflatten([("kpiPeriods.².label", "x")])
        assert draft == {"kpiPeriods": {"²": {"label": "x"}}}

    def test_non_ascii_digit_key_sanitizes_without_error(self):
        record = sanitize(unflatten([("name", "Acme"), ("kpiPeriods.².label", "x")]), "c1")
        assert len(record["kpiPeriods"]) == 1
        assert record["kpiPeriods"][0]["id"] == "c1"
