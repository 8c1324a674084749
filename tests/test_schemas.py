"""
Tests for the client payload schema and its issue reporting.
"""
import pytest
from pydantic import ValidationError

from cockpit.schemas import issues_from, validate_client
from tests.factories import valid_payload


def _issues(payload):
    with pytest.raises(ValidationError) as excinfo:
        validate_client(payload)
    return issues_from(excinfo.value.errors())


@pytest.mark.unit
class TestClientPayload:

    def test_valid_payload_drops_absent_sections(self):
        record = validate_client(valid_payload()).to_record()
        assert record["id"] == "c1"
        assert record["kpiPeriods"][0]["kpis"] == [{"label": "Sessions", "value": "20k"}]
        for key in ("ecommerce", "ecommercePeriods", "ads", "adsPeriods", "monthlyHighlights"):
            assert key not in record

    def test_partial_snapshot_gets_blank_fields(self):
        record = validate_client(valid_payload(ecommerce={"revenue": "42k"})).to_record()
        assert record["ecommerce"] == {
            "revenue": "42k",
            "conversionRate": "",
            "returningCustomers": "",
            "topProduct": "",
            "avgOrderValue": "",
            "cartAbandonment": "",
        }

    def test_draft_flags_are_ignored(self):
        record = validate_client(valid_payload(ecommerceEnabled=False, adsEnabled=True)).to_record()
        assert "ecommerceEnabled" not in record
        assert "adsEnabled" not in record

    def test_unknown_status_reports_path(self):
        payload = valid_payload(initiatives=[{"title": "SEO", "status": "done", "details": "x"}])
        [issue] = _issues(payload)
        assert issue["path"] == ["initiatives", 0, "status"]
        assert issue["field"] == "initiatives.0.status"
        assert issue["code"] == "literal_error"

    def test_empty_name_reports_constraint(self):
        [issue] = _issues(valid_payload(name=""))
        assert issue["path"] == ["name"]
        assert issue["code"] == "string_too_short"

    def test_empty_kpi_value_reports_nested_path(self):
        periods = valid_payload()["kpiPeriods"]
        periods[0]["kpis"] = [{"label": "Sessions", "value": ""}]
        [issue] = _issues(valid_payload(kpiPeriods=periods))
        assert issue["path"] == ["kpiPeriods", 0, "kpis", 0, "value"]

    def test_missing_periods_is_an_issue(self):
        payload = valid_payload()
        del payload["kpiPeriods"]
        fields = [i["field"] for i in _issues(payload)]
        assert fields == ["kpiPeriods"]
