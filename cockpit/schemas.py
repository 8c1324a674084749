from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------- Client payload ----------
class KPI(_Model):
    label: str = Field(min_length=1)
    value: str = Field(min_length=1)
    helper: Optional[str] = None


class KPIPeriod(_Model):
    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    kpis: List[KPI] = Field(default_factory=list)
    monthlyHighlights: List[str] = Field(default_factory=list)
    thisMonthActions: List[str] = Field(default_factory=list)
    nextMonthActions: List[str] = Field(default_factory=list)


class Initiative(_Model):
    title: str = Field(min_length=1)
    status: Literal["active", "paused", "monitoring", "planning"]
    details: str = Field(min_length=1)


class EcommerceSnapshot(_Model):
    revenue: str = ""
    conversionRate: str = ""
    returningCustomers: str = ""
    topProduct: str = ""
    avgOrderValue: str = ""
    cartAbandonment: str = ""


class AdsSnapshot(_Model):
    spend: str = ""
    roas: str = ""
    cpa: str = ""
    impressions: str = ""
    ctr: str = ""
    bestChannel: str = ""


class EcommercePeriod(_Model):
    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    ecommerce: EcommerceSnapshot = Field(default_factory=EcommerceSnapshot)


class AdsPeriod(_Model):
    id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    ads: AdsSnapshot = Field(default_factory=AdsSnapshot)


class ClientPayload(_Model):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    industry: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    kpiPeriods: List[KPIPeriod]
    # legacy mirror of the first period
    kpis: Optional[List[KPI]] = None
    monthlyHighlights: Optional[List[str]] = None
    thisMonthActions: Optional[List[str]] = None
    nextMonthActions: Optional[List[str]] = None
    initiatives: List[Initiative] = Field(default_factory=list)
    ecommerce: Optional[EcommerceSnapshot] = None
    ecommercePeriods: Optional[List[EcommercePeriod]] = None
    ads: Optional[AdsSnapshot] = None
    adsPeriods: Optional[List[AdsPeriod]] = None

    def to_record(self) -> Dict[str, Any]:
        # absent optional sections stay absent
        return self.model_dump(exclude_none=True)


# ---------- Auth ----------
class LoginPayload(_Model):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ---------- Error reporting ----------
def issues_from(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten pydantic error dicts into ``{path, message, code}`` issues."""
    out: List[Dict[str, Any]] = []
    for err in errors:
        loc = [part for part in err.get("loc", ()) if part != "body"]
        out.append({
            "path": loc,
            "field": ".".join(str(part) for part in loc),
            "message": err.get("msg", ""),
            "code": err.get("type", ""),
        })
    return out


def validate_client(payload: Dict[str, Any]) -> ClientPayload:
    return ClientPayload.model_validate(payload)


__all__ = [
    "AdsPeriod",
    "AdsSnapshot",
    "ClientPayload",
    "EcommercePeriod",
    "EcommerceSnapshot",
    "Initiative",
    "KPI",
    "KPIPeriod",
    "LoginPayload",
    "ValidationError",
    "issues_from",
    "validate_client",
]
