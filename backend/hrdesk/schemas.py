from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, model_serializer

ReviewStatus = Literal["unreviewed", "in_progress", "done"]


def serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


def serialize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready copy of a store row with timestamps pinned to UTC."""
    serialized: Dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, dt.datetime):
            serialized[key] = serialize_datetime(value)
        elif isinstance(value, dt.date):
            serialized[key] = value.isoformat()
        else:
            serialized[key] = value
    return serialized


class LoginRequest(BaseModel):
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_at: Optional[dt.datetime]

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "expires_at": serialize_datetime(self.expires_at) if self.expires_at else None,
        }


class ChangesResponse(BaseModel):
    versions: Dict[str, int]


class ReviewTransitionRequest(BaseModel):
    current: Optional[ReviewStatus] = None


class ReviewTransitionResponse(BaseModel):
    table: str
    id: str
    previous: ReviewStatus
    review_status: ReviewStatus
    label: str


class RecordPageResponse(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int
    total_pages: int
    start: int
    end: int


class FeedItemResponse(BaseModel):
    id: str
    table: str
    type: str
    full_name: Optional[str] = None
    requester: Optional[str] = None
    email: Optional[str] = None
    summary: str
    details: Dict[str, Any] = Field(default_factory=dict)
    review_status: ReviewStatus
    review_label: str
    created_at: dt.datetime

    @model_serializer(mode="wrap", when_used="json")
    def _serialize(self, handler) -> dict[str, Any]:
        data = handler(self)
        data["created_at"] = serialize_datetime(self.created_at)
        return data


class WorkflowStepUpdateRequest(BaseModel):
    step: str
    value: str


class WorkflowStepDetail(BaseModel):
    step: str
    label: str
    value: str
    value_label: str
    options: List[str]


class WorkflowSummaryResponse(BaseModel):
    id: str
    steps: Dict[str, str]
    step_details: List[WorkflowStepDetail]
    has_rejection: bool
    is_complete: bool
    total_progress: float
    progress_percent: float
    completed_steps: int
    state: Literal["rejected", "complete", "in_progress"]
    label: str


class DepreciationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    yearly_depreciation: float
    years_elapsed: float
    book_value: float
    depreciation_by_year: List[float]
    is_fully_depreciated: bool


class DepreciationDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    year: int
    depreciation: float
    book_value: float


class EquipmentCreateRequest(BaseModel):
    serial_number: str
    model: str
    assigned_to: Optional[str] = None
    insured: bool = False
    purchase_date: Optional[dt.date] = None
    purchase_cost: Optional[FiniteFloat] = None


class EquipmentFieldUpdateRequest(BaseModel):
    field: str
    value: Any = None


class EquipmentResponse(BaseModel):
    serial_number: str
    model: str
    model_label: str
    assigned_to: Optional[str]
    insured: bool
    purchase_date: Optional[dt.date]
    purchase_cost: Optional[float]
    created_at: dt.datetime
    updated_at: dt.datetime
    depreciation: DepreciationResponse

    @model_serializer(mode="wrap", when_used="json")
    def _serialize(self, handler) -> dict[str, Any]:
        data = handler(self)
        data["created_at"] = serialize_datetime(self.created_at)
        data["updated_at"] = serialize_datetime(self.updated_at)
        return data


class EquipmentListResponse(BaseModel):
    items: List[EquipmentResponse]
    total: int


class EquipmentDepreciationResponse(BaseModel):
    serial_number: str
    purchase_date: Optional[dt.date]
    purchase_cost: Optional[float]
    yearly_depreciation: float
    details: List[DepreciationDetailResponse]


class NewsCreateRequest(BaseModel):
    title: str
    content: str = ""
    type: str = "slide"
    is_active: bool = True
    published_for: dt.date


class NewsUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    type: Optional[str] = None
    is_active: Optional[bool] = None
    published_for: Optional[dt.date] = None


class NewsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    title: str
    content: str
    type: str
    is_active: bool
    published_for: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime

    @model_serializer(mode="wrap", when_used="json")
    def _serialize(self, handler) -> dict[str, Any]:
        data = handler(self)
        data["created_at"] = serialize_datetime(self.created_at)
        data["updated_at"] = serialize_datetime(self.updated_at)
        return data
