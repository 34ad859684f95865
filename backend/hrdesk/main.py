from __future__ import annotations

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db, init_db
from .models import AccessToken
from .schemas import (
    ChangesResponse,
    EquipmentCreateRequest,
    EquipmentDepreciationResponse,
    EquipmentFieldUpdateRequest,
    EquipmentListResponse,
    EquipmentResponse,
    FeedItemResponse,
    LoginRequest,
    LoginResponse,
    NewsCreateRequest,
    NewsResponse,
    NewsUpdateRequest,
    RecordPageResponse,
    ReviewTransitionRequest,
    ReviewTransitionResponse,
    WorkflowStepUpdateRequest,
    WorkflowSummaryResponse,
)
from .services import (
    build_feed,
    change_versions,
    create_equipment,
    create_news,
    delete_news,
    export_equipment_xlsx,
    export_news_csv,
    get_equipment,
    get_equipment_depreciation,
    get_workflow,
    list_equipment,
    list_news,
    list_records,
    login,
    today,
    toggle_news,
    transition_review,
    update_equipment_field,
    update_news,
    update_workflow_step,
)
from .token_utils import revoke_token, verify_token

init_db()

bearer_scheme = HTTPBearer(auto_error=False)


def require_access(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> AccessToken:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No autenticado")
    token = verify_token(db, credentials.credentials)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido o expirado")
    return token


app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api = APIRouter(dependencies=[Depends(require_access)])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/auth/login", response_model=LoginResponse)
def auth_login(payload: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    token, value = login(db, payload.password)
    return LoginResponse(token=value, expires_at=token.expires_at)


@app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def auth_logout(token: AccessToken = Depends(require_access), db: Session = Depends(get_db)) -> Response:
    revoke_token(db, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@api.get("/changes", response_model=ChangesResponse)
def changes() -> ChangesResponse:
    return ChangesResponse(versions=change_versions())


@api.get("/feed", response_model=list[FeedItemResponse])
def feed(limit: Optional[int] = Query(default=None, ge=1), db: Session = Depends(get_db)) -> list[FeedItemResponse]:
    return build_feed(db, limit)


@api.get("/records/{table}", response_model=RecordPageResponse)
def records(
    table: str,
    q: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
) -> RecordPageResponse:
    return list_records(db, table, q, page, page_size)


@api.post("/records/{table}/{record_id}/review", response_model=ReviewTransitionResponse)
def review_record(
    table: str,
    record_id: str,
    payload: ReviewTransitionRequest,
    db: Session = Depends(get_db),
) -> ReviewTransitionResponse:
    return transition_review(db, table, record_id, payload.current)


@api.get("/vacations/{record_id}/workflow", response_model=WorkflowSummaryResponse)
def vacation_workflow(record_id: str, db: Session = Depends(get_db)) -> WorkflowSummaryResponse:
    return get_workflow(db, record_id)


@api.patch("/vacations/{record_id}/workflow", response_model=WorkflowSummaryResponse)
def vacation_workflow_update(
    record_id: str,
    payload: WorkflowStepUpdateRequest,
    db: Session = Depends(get_db),
) -> WorkflowSummaryResponse:
    return update_workflow_step(db, record_id, payload.step, payload.value)


@api.get("/equipment", response_model=EquipmentListResponse)
def equipment_list(
    q: Optional[str] = None,
    sort: str = "serial_number",
    direction: str = Query(default="asc", pattern="^(asc|desc)$"),
    as_of: Optional[dt.date] = None,
    db: Session = Depends(get_db),
) -> EquipmentListResponse:
    items = list_equipment(db, q, sort, direction == "desc", as_of)
    return EquipmentListResponse(items=items, total=len(items))


@api.post("/equipment", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
def equipment_create(payload: EquipmentCreateRequest, db: Session = Depends(get_db)) -> EquipmentResponse:
    return create_equipment(
        db,
        payload.serial_number,
        payload.model,
        payload.assigned_to,
        payload.insured,
        payload.purchase_date,
        payload.purchase_cost,
    )


@api.get("/equipment/export.xlsx")
def equipment_export(as_of: Optional[dt.date] = None, db: Session = Depends(get_db)) -> Response:
    content = export_equipment_xlsx(db, as_of)
    filename = f"inventario_{(as_of or today()).isoformat()}.xlsx"
    return Response(
        content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@api.get("/equipment/{serial_number}", response_model=EquipmentResponse)
def equipment_detail(
    serial_number: str,
    as_of: Optional[dt.date] = None,
    db: Session = Depends(get_db),
) -> EquipmentResponse:
    return get_equipment(db, serial_number, as_of)


@api.patch("/equipment/{serial_number}", response_model=EquipmentResponse)
def equipment_update(
    serial_number: str,
    payload: EquipmentFieldUpdateRequest,
    db: Session = Depends(get_db),
) -> EquipmentResponse:
    return update_equipment_field(db, serial_number, payload.field, payload.value)


@api.get("/equipment/{serial_number}/depreciation", response_model=EquipmentDepreciationResponse)
def equipment_depreciation(serial_number: str, db: Session = Depends(get_db)) -> EquipmentDepreciationResponse:
    return get_equipment_depreciation(db, serial_number)


@api.get("/news", response_model=List[NewsResponse])
def news_list(q: Optional[str] = None, db: Session = Depends(get_db)) -> List[NewsResponse]:
    return list_news(db, q)


@api.post("/news", response_model=NewsResponse, status_code=status.HTTP_201_CREATED)
def news_create(payload: NewsCreateRequest, db: Session = Depends(get_db)) -> NewsResponse:
    return create_news(
        db,
        payload.title,
        payload.content,
        payload.type,
        payload.is_active,
        payload.published_for,
    )


@api.get("/news/export.csv")
def news_export(db: Session = Depends(get_db)) -> Response:
    content = export_news_csv(db)
    filename = f"noticias_{today().isoformat()}.csv"
    return Response(
        content.encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@api.put("/news/{news_id}", response_model=NewsResponse)
def news_update(news_id: str, payload: NewsUpdateRequest, db: Session = Depends(get_db)) -> NewsResponse:
    return update_news(db, news_id, payload.model_dump(exclude_unset=True))


@api.post("/news/{news_id}/toggle", response_model=NewsResponse)
def news_toggle(news_id: str, db: Session = Depends(get_db)) -> NewsResponse:
    return toggle_news(db, news_id)


@api.delete("/news/{news_id}", status_code=status.HTTP_204_NO_CONTENT)
def news_delete(news_id: str, db: Session = Depends(get_db)) -> Response:
    delete_news(db, news_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.include_router(api)
