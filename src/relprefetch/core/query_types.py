"""
Pydantic models for relationship prefetch planning.

These define the relationship configuration entries, the predicates found in
a where clause, and the plan returned to callers.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import convert_keys_to_camel


DEFAULT_MAX_KEYS = 50
DEFAULT_PAGE_SIZE = 200

PredicateOp = Literal["=", "!=", "like"]
PlanMode = Literal["none", "prefetch", "error"]


# --- Configuration ---

class RelationshipConfig(BaseModel):
    """
    How a relation alias on a root resource joins to a related resource.

    File format (camelCase, as stored under relationships/):
    {
        "relatedOs": "mxapiasset",
        "rootJoinField": "assetnum",
        "relatedKeyField": "assetnum",
        "relatedSiteField": "siteid",
        "maxKeys": 50,
        "pageSize": 200,
        "select": "assetnum"
    }
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    related_resource: str = Field(alias="relatedOs")
    root_join_field: str = Field(alias="rootJoinField")
    related_key_field: str = Field(alias="relatedKeyField")
    related_site_field: Optional[str] = Field(default=None, alias="relatedSiteField")
    max_keys: int = Field(default=DEFAULT_MAX_KEYS, gt=0, alias="maxKeys")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0, alias="pageSize")
    select: str = ""

    @model_validator(mode="before")
    @classmethod
    def _normalize_input(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # relatedResource is accepted as a spelling of relatedOs
        if "relatedOs" not in data and "related_resource" not in data and "relatedResource" in data:
            data["relatedOs"] = data.pop("relatedResource")
        if not str(data.get("select") or "").strip():
            data["select"] = data.get("relatedKeyField", data.get("related_key_field", ""))
        return data

    @field_validator("related_resource", "root_join_field", "related_key_field", "select")
    @classmethod
    def _require_non_empty(cls, value: str) -> str:
        value = str(value).strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("related_site_field")
    @classmethod
    def _blank_site_field_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None


# --- Detection ---

class Predicate(BaseModel):
    """
    A dotted-relation comparison found in a where clause.

    Input:      asset.assettype="SENSOR"
    Predicate:  Predicate(relation="asset", field="assettype", op="=", value="SENSOR")

    start/end are the offsets of the whole clause in the source filter.
    """
    model_config = ConfigDict(frozen=True)

    relation: str
    field: str
    op: PredicateOp
    value: str
    start: int = 0
    end: int = 0
    text: str = ""

    @property
    def signature(self) -> tuple[str, str, str, str]:
        """Identity used to resolve repeated clauses once."""
        return (self.relation.lower(), self.field.lower(), self.op, self.value)


# --- Plan steps ---

class PrefetchStep(BaseModel):
    """Announces an outgoing resolution query."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["prefetch"] = "prefetch"
    relationship: str
    related_resource: str
    related_where: str
    select: str
    root_join_field: str
    related_key_field: str
    max_keys: int


class PrefetchResultStep(BaseModel):
    """Keys returned by the related resource vs. keys used after truncation."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["prefetch_result"] = "prefetch_result"
    relationship: str
    keys_returned: int
    keys_used: int


class RewriteStep(BaseModel):
    """Textual substitution applied to the root filter."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["rewrite"] = "rewrite"
    relationship: str
    original: str
    replaced_with: str
    occurrences: int = 1
    note: Optional[str] = None


class ErrorStep(BaseModel):
    """Resolution failure for one predicate."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    relationship: str
    message: str


PlanStep = Annotated[
    Union[PrefetchStep, PrefetchResultStep, RewriteStep, ErrorStep],
    Field(discriminator="kind"),
]


class PlanError(BaseModel):
    """Entry of the plan's error list."""
    model_config = ConfigDict(frozen=True)

    message: str
    relationship: Optional[str] = None


class Plan(BaseModel):
    """
    Structured trace of one planning call.

    Attach `plan.to_metadata()` to response metadata for diagnostics.
    """
    model_config = ConfigDict(frozen=True)

    mode: PlanMode = "none"
    detected: list[Predicate] = Field(default_factory=list)
    steps: list[PlanStep] = Field(default_factory=list)
    truncated: bool = False
    errors: list[PlanError] = Field(default_factory=list)

    def to_metadata(self) -> dict[str, Any]:
        """Plan as a camelCase JSON-ready dict."""
        data = self.model_dump(mode="json", exclude_none=True)
        data["detected"] = [
            {"rel": p.relation, "field": p.field, "op": p.op, "value": p.value}
            for p in self.detected
        ]
        return convert_keys_to_camel(data)
