"""Client record normalization.

Records on disk come in two shapes. Older entries keep a single period of
data at the top level (``kpis``, ``monthlyHighlights``, ``thisMonthActions``,
``nextMonthActions``); newer ones keep a list of ``kpiPeriods``. Ecommerce and
ads data follow the same pattern with a single snapshot (``ecommerce``,
``ads``) or a list of labelled periods.

``normalize`` lifts any record into the multi-period shape for reading,
``sanitize`` turns an edited draft back into a clean record for storage and
``project_legacy`` keeps the top-level mirror in sync for older readers.
"""
from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional

DEFAULT_PERIOD_LABEL = "Période en cours"
DEFAULT_PERIOD_ID = "periode-1"
DEFAULT_STATUS = "planning"
INITIATIVE_STATUSES = ("active", "paused", "monitoring", "planning")

PERIOD_LIST_FIELDS = ("monthlyHighlights", "thisMonthActions", "nextMonthActions")
ECOMMERCE_FIELDS = (
    "revenue",
    "conversionRate",
    "returningCustomers",
    "topProduct",
    "avgOrderValue",
    "cartAbandonment",
)
ADS_FIELDS = ("spend", "roas", "cpa", "impressions", "ctr", "bestChannel")

_TRUTHY = ("1", "true", "on", "yes")


class Feature:
    """Optional per-client section: a snapshot plus labelled periods."""

    def __init__(self, key: str, fields: Iterable[str], id_prefix: str,
                 current_label: str, label_prefix: str):
        self.key = key
        self.fields = tuple(fields)
        self.periods_key = f"{key}Periods"
        self.flag = f"{key}Enabled"
        self.id_prefix = id_prefix
        self.current_label = current_label
        self.label_prefix = label_prefix

    def blank(self) -> Dict[str, str]:
        return {name: "" for name in self.fields}


ECOMMERCE = Feature("ecommerce", ECOMMERCE_FIELDS, "ecom", "Mois en cours", "Mois")
ADS = Feature("ads", ADS_FIELDS, "ads", "Semaine en cours", "Semaine")
FEATURES = (ECOMMERCE, ADS)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _clean_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [item for item in (_text(v) for v in values) if item]


def _padded(values: Any) -> List[str]:
    if isinstance(values, list) and values:
        return copy.deepcopy(values)
    return [""]


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


# ---------- Read side ----------
def legacy_period(record: Dict[str, Any]) -> Dict[str, Any]:
    """Build the single period implied by a record's top-level legacy fields."""
    period: Dict[str, Any] = {
        "id": f"periode-{record.get('id') or 'client'}",
        "label": DEFAULT_PERIOD_LABEL,
        "kpis": copy.deepcopy(_as_list(record.get("kpis"))),
    }
    for name in PERIOD_LIST_FIELDS:
        period[name] = _padded(record.get(name))
    return period


def normalize_kpi_periods(record: Dict[str, Any]) -> List[Dict[str, Any]]:
    periods = record.get("kpiPeriods")
    if isinstance(periods, list) and periods:
        return copy.deepcopy(periods)
    return [legacy_period(record)]


def _normalize_feature(out: Dict[str, Any], record: Dict[str, Any], feature: Feature) -> None:
    snapshot = record.get(feature.key)
    periods = record.get(feature.periods_key)

    if isinstance(periods, list) and periods:
        out[feature.periods_key] = copy.deepcopy(periods)
    elif isinstance(snapshot, dict):
        out[feature.periods_key] = [
            {
                "id": f"{feature.id_prefix}-{record.get('id') or 'client'}",
                "label": feature.current_label,
                feature.key: copy.deepcopy(snapshot),
            }
        ]
    else:
        out.pop(feature.periods_key, None)

    if isinstance(snapshot, dict):
        out[feature.key] = copy.deepcopy(snapshot)
    else:
        out.pop(feature.key, None)

    out[feature.flag] = feature.periods_key in out


def normalize(record: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``record`` in canonical multi-period shape.

    The input is left untouched. Applying ``normalize`` to its own output
    returns an equal record.
    """
    out = copy.deepcopy(record)
    for name in ("name", "industry", "summary"):
        out[name] = out.get(name) or ""
    out["initiatives"] = _as_list(out.get("initiatives"))

    out["kpiPeriods"] = normalize_kpi_periods(record)
    first = out["kpiPeriods"][0]
    for name in PERIOD_LIST_FIELDS:
        out[name] = _padded(first.get(name) if isinstance(first, dict) else None)

    for feature in FEATURES:
        _normalize_feature(out, record, feature)
    return out


def project_legacy(record: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the first period's lists to the top level for older readers."""
    out = copy.deepcopy(record)
    periods = _as_list(out.get("kpiPeriods"))
    first = periods[0] if periods and isinstance(periods[0], dict) else {}
    for name in PERIOD_LIST_FIELDS:
        out[name] = copy.deepcopy(_as_list(first.get(name)))
    return out


# ---------- Write side ----------
def _sanitize_kpi(kpi: Any) -> Optional[Dict[str, str]]:
    kpi = _as_dict(kpi)
    label, value, helper = _text(kpi.get("label")), _text(kpi.get("value")), _text(kpi.get("helper"))
    if not (label and value):
        return None
    out = {"label": label, "value": value}
    if helper:
        out["helper"] = helper
    return out


def _sanitize_kpi_periods(periods: Any, fallback_id: str) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for index, period in enumerate(_as_list(periods), start=1):
        period = _as_dict(period)
        kpis = [k for k in (_sanitize_kpi(item) for item in _as_list(period.get("kpis"))) if k]
        label = _text(period.get("label"))
        if not label and not kpis:
            continue
        item: Dict[str, Any] = {
            "id": _text(period.get("id")) or f"periode-{index}",
            "label": label or f"Période {index}",
            "kpis": kpis,
        }
        for name in PERIOD_LIST_FIELDS:
            item[name] = _clean_list(period.get(name))
        out.append(item)

    if not out:
        fallback: Dict[str, Any] = {
            "id": _text(fallback_id) or DEFAULT_PERIOD_ID,
            "label": DEFAULT_PERIOD_LABEL,
            "kpis": [],
        }
        for name in PERIOD_LIST_FIELDS:
            fallback[name] = []
        out.append(fallback)
    return out


def _sanitize_snapshot(snapshot: Any, feature: Feature) -> Dict[str, str]:
    snapshot = _as_dict(snapshot)
    return {name: _text(snapshot.get(name)) for name in feature.fields}


def _sanitize_feature_periods(periods: Any, feature: Feature) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for index, period in enumerate(_as_list(periods), start=1):
        period = _as_dict(period)
        snapshot = _sanitize_snapshot(period.get(feature.key), feature)
        label = _text(period.get("label"))
        if not label and not any(snapshot.values()):
            continue
        out.append({
            "id": _text(period.get("id")) or f"{feature.id_prefix}-{index}",
            "label": label or f"{feature.label_prefix} {index}",
            feature.key: snapshot,
        })
    return out


def _sanitize_initiatives(initiatives: Any) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for initiative in _as_list(initiatives):
        initiative = _as_dict(initiative)
        title, details = _text(initiative.get("title")), _text(initiative.get("details"))
        if not (title and details):
            continue
        out.append({
            "title": title,
            "status": _text(initiative.get("status")) or DEFAULT_STATUS,
            "details": details,
        })
    return out


def sanitize(draft: Dict[str, Any], fallback_id: str) -> Dict[str, Any]:
    """Turn an edited draft into a record ready for validation and storage.

    Blank rows are dropped rather than padded, so list fields may come out
    empty. Ecommerce and ads data are kept only when the draft's
    ``ecommerceEnabled`` / ``adsEnabled`` flag is set; otherwise the keys are
    left out entirely. The returned ``id`` comes from the draft and must be
    replaced by the route id before saving.
    """
    kpi_periods = _sanitize_kpi_periods(draft.get("kpiPeriods"), fallback_id)

    record: Dict[str, Any] = {
        "id": _text(draft.get("id")) or _text(fallback_id),
        "name": _text(draft.get("name")),
        "industry": _text(draft.get("industry")),
        "summary": _text(draft.get("summary")),
        "kpiPeriods": kpi_periods,
        "initiatives": _sanitize_initiatives(draft.get("initiatives")),
    }
    for name in PERIOD_LIST_FIELDS:
        record[name] = list(kpi_periods[0][name])

    for feature in FEATURES:
        if not _flag(draft.get(feature.flag)):
            continue
        record[feature.key] = _sanitize_snapshot(draft.get(feature.key), feature)
        periods = _sanitize_feature_periods(draft.get(feature.periods_key), feature)
        if periods:
            record[feature.periods_key] = periods
    return record


# ---------- Editor support ----------
def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def _blank_kpi() -> Dict[str, str]:
    return {"label": "", "value": "", "helper": ""}


def _blank_initiative() -> Dict[str, str]:
    return {"title": "", "status": DEFAULT_STATUS, "details": ""}


def to_draft(record: Dict[str, Any]) -> Dict[str, Any]:
    """Normalized record padded with blank rows for the admin editor.

    Every list ends with one empty entry so a new row can be typed in without
    client-side scripting. ``sanitize`` drops the unused ones again.
    """
    draft = normalize(record)
    draft["kpiPeriods"].append({"id": _new_id("periode"), "label": "", "kpis": []})
    for period in draft["kpiPeriods"]:
        period["kpis"] = _as_list(period.get("kpis")) + [_blank_kpi()]
        for name in PERIOD_LIST_FIELDS:
            period[name] = [v for v in _as_list(period.get(name)) if _text(v)] + [""]
    draft["initiatives"] = draft["initiatives"] + [_blank_initiative()]

    for feature in FEATURES:
        snapshot = _as_dict(draft.get(feature.key))
        draft[feature.key] = {name: snapshot.get(name, "") for name in feature.fields}
        periods = []
        for period in _as_list(draft.get(feature.periods_key)):
            period = _as_dict(period)
            values = _as_dict(period.get(feature.key))
            periods.append({
                "id": period.get("id", ""),
                "label": period.get("label", ""),
                feature.key: {name: values.get(name, "") for name in feature.fields},
            })
        periods.append({"id": _new_id(feature.id_prefix), "label": "", feature.key: feature.blank()})
        draft[feature.periods_key] = periods
    return draft


__all__ = [
    "ADS",
    "ECOMMERCE",
    "FEATURES",
    "INITIATIVE_STATUSES",
    "PERIOD_LIST_FIELDS",
    "legacy_period",
    "normalize",
    "normalize_kpi_periods",
    "project_legacy",
    "sanitize",
    "to_draft",
]
