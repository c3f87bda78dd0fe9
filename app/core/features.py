"""
Plan feature registry and validated feature payloads.

Single source of truth for the entitlements a plan, top-up pack or
membership tier may carry. Plan features are a tagged variant keyed on
``type`` so a malformed payload is rejected at write time instead of being
read back later as a zero-quota plan.
"""
import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ConfigurationError, ValidationError

# Features a ledger row can be decremented for
QUOTA_FEATURES: List[str] = [
    "resume_optimizations",
]

TEMPLATE_ACCESS_LEVELS: List[str] = ["basic", "premium", "all"]

AVAILABLE_FEATURES: List[Dict[str, Any]] = [
    {
        "key": "resume_optimizations",
        "name": "AI resume optimizations",
        "kind": "numeric",
        "description": "Number of AI resume optimizations the plan grants.",
    },
    {
        "key": "mock_interviews",
        "name": "AI mock interviews",
        "kind": "numeric",
        "description": "Number of AI mock interview sessions.",
    },
    {
        "key": "template_access_level",
        "name": "Template library access",
        "kind": "enum",
        "options": TEMPLATE_ACCESS_LEVELS,
        "description": "Which template tier the user may render with.",
    },
    {
        "key": "remove_watermark",
        "name": "Remove export watermark",
        "kind": "boolean",
        "description": "Exported PDFs carry no watermark.",
    },
    {
        "key": "data_retention_days",
        "name": "Data retention (days)",
        "kind": "numeric",
        "description": "How long resume data is kept in the cloud (99999 = forever).",
    },
    {
        "key": "priority_support",
        "name": "Priority support",
        "kind": "boolean",
        "description": "Access to the priority support channel.",
    },
    {
        "key": "pioneer_badge",
        "name": "Pioneer badge",
        "kind": "boolean",
        "description": "Grants the founding-member profile badge.",
    },
]


class _PlanFeaturesBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resume_optimizations: int = Field(0, ge=0)
    mock_interviews: Optional[int] = Field(None, ge=0)
    template_access_level: Optional[Literal["basic", "premium", "all"]] = None
    remove_watermark: Optional[bool] = None
    data_retention_days: Optional[int] = Field(None, ge=0)
    priority_support: Optional[bool] = None
    pioneer_badge: Optional[bool] = None


class SubscriptionFeatures(_PlanFeaturesBase):
    """Quota granted per subscription window; expires with the window."""
    type: Literal["subscription"] = "subscription"


class PermanentFeatures(_PlanFeaturesBase):
    """Quota credited to the permanent pool; never expires."""
    type: Literal["permanent"]


PlanFeatures = Annotated[
    Union[SubscriptionFeatures, PermanentFeatures],
    Field(discriminator="type"),
]

_plan_features_adapter = TypeAdapter(PlanFeatures)


class TopUpPackFeatures(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resume_optimizations: int = Field(..., gt=0)


def _error_list(e: PydanticValidationError) -> List[Dict[str, Any]]:
    return [{"loc": [str(p) for p in err["loc"]], "msg": err["msg"]} for err in e.errors()]


def _with_default_type(raw: Any) -> Any:
    if isinstance(raw, dict) and "type" not in raw:
        return {**raw, "type": "subscription"}
    return raw


def validate_plan_features(raw: Any) -> Union[SubscriptionFeatures, PermanentFeatures]:
    """Validate a plan features payload on write. Raises ValidationError."""
    if raw is None:
        raw = {}
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    try:
        return _plan_features_adapter.validate_python(_with_default_type(raw))
    except PydanticValidationError as e:
        raise ValidationError("Invalid plan features", errors=_error_list(e))


def load_plan_features(raw: Any, plan_id: Optional[int] = None) -> Union[SubscriptionFeatures, PermanentFeatures]:
    """
    Parse features already stored on a plan row.

    Stored data that no longer validates is a configuration problem, not a
    request problem, so it is reported as such.
    """
    try:
        if isinstance(raw, str):
            raw = json.loads(raw)
        return validate_plan_features(raw)
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(
            f"Plan {plan_id} has malformed features",
            plan_id=plan_id,
            errors=getattr(e, "extra", {}).get("errors"),
        )


def validate_top_up_features(raw: Any) -> TopUpPackFeatures:
    try:
        return TopUpPackFeatures.model_validate(raw or {})
    except PydanticValidationError as e:
        raise ValidationError("Invalid top-up pack features", errors=_error_list(e))


def is_quota_feature(feature: str) -> bool:
    return feature in QUOTA_FEATURES
