from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import math
import re
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from zoneinfo import ZoneInfo

from fastapi import HTTPException, status
from openpyxl import Workbook
from sqlalchemy.orm import Session

from .config import settings
from .depreciation import compute_depreciation, depreciation_details
from .listing import filter_rows, paginate, sort_rows
from .models import AccessToken
from .review import apply_review_transition, next_review_status, normalize_review_status, review_label
from .schemas import serialize_row
from .store import (
    DuplicateRecordError,
    RecordNotFoundError,
    RecordStore,
    StoreError,
    UnknownFieldError,
    UnknownTableError,
    change_hub,
)
from .taxonomy import (
    EQUIPMENT_MODELS,
    NEWS_TYPES,
    REVIEWABLE_TABLES,
    REVIEWABLE_TYPE_LABELS,
    WORKFLOW_STEP_LABELS,
    WORKFLOW_STEPS,
    WORKFLOW_VALUE_LABELS,
    model_label,
)
from .token_utils import check_password, create_token
from .workflow import VACATION_TABLE, InvalidStepError, apply_step_update, summarize_workflow

logger = logging.getLogger(__name__)

UTC = dt.timezone.utc
LOCAL_TZ = ZoneInfo(settings.timezone)

EQUIPMENT_TABLE = "equipos_ti"
NEWS_TABLE = "news_updates"

EQUIPMENT_SEARCH_FIELDS = ("serial_number", "model_label", "assigned_to")
EQUIPMENT_EDITABLE_FIELDS = {"model", "assigned_to", "insured", "purchase_date", "purchase_cost"}
EQUIPMENT_SORT_FIELDS = (
    "serial_number",
    "model",
    "model_label",
    "assigned_to",
    "insured",
    "purchase_date",
    "purchase_cost",
    "created_at",
    "updated_at",
)
NEWS_SEARCH_FIELDS = ("title", "content")

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


def today() -> dt.date:
    return dt.datetime.now(LOCAL_TZ).date()


def _local(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(LOCAL_TZ)


def _format_date(value: Optional[dt.date], fmt: str = "%d/%m/%Y") -> str:
    return value.strftime(fmt) if value else ""


def _store_http_error(exc: StoreError) -> HTTPException:
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registro no encontrado")
    if isinstance(exc, UnknownTableError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tabla desconocida")
    if isinstance(exc, DuplicateRecordError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El registro ya existe")
    if isinstance(exc, UnknownFieldError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Campo desconocido")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Error al guardar en la base de datos")


def _require_reviewable(table: str) -> None:
    if table not in REVIEWABLE_TABLES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tabla desconocida")


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------


def login(db: Session, password: str) -> tuple[AccessToken, str]:
    if not check_password(password):
        logger.warning("Rejected dashboard login with wrong password")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Contraseña incorrecta")
    return create_token(db)


def change_versions() -> Dict[str, int]:
    return change_hub.snapshot()


# ---------------------------------------------------------------------------
# Reviewable records
# ---------------------------------------------------------------------------


def _decorate_reviewable(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize_row(row)
    data["review_status"] = normalize_review_status(row.get("review_status"))
    data["review_label"] = review_label(row.get("review_status"))
    if table == VACATION_TABLE:
        summary = summarize_workflow(row)
        data["workflow"] = {
            "progress_percent": summary.progress_percent,
            "completed_steps": summary.completed_steps,
            "state": summary.state,
            "label": summary.label,
        }
    return data


def list_records(
    db: Session,
    table: str,
    query: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    _require_reviewable(table)
    try:
        rows = RecordStore(db).select(table, order_by="created_at", descending=True)
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    result = paginate(filter_rows(rows, query), page, page_size or settings.page_size)
    return {
        "items": [_decorate_reviewable(table, row) for row in result.items],
        "page": result.page,
        "page_size": result.page_size,
        "total": result.total,
        "total_pages": result.total_pages,
        "start": result.start,
        "end": result.end,
    }


def transition_review(db: Session, table: str, record_id: str, current: Optional[str]) -> Dict[str, Any]:
    _require_reviewable(table)
    previous = normalize_review_status(current)
    target = next_review_status(current)
    try:
        apply_review_transition(RecordStore(db), table, record_id, target)
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    return {
        "table": table,
        "id": record_id,
        "previous": previous,
        "review_status": target,
        "label": review_label(target),
    }


def _feed_entry(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "id": row["id"],
        "table": table,
        "type": REVIEWABLE_TYPE_LABELS[table],
        "email": row.get("email"),
        "review_status": normalize_review_status(row.get("review_status")),
        "review_label": review_label(row.get("review_status")),
        "created_at": row["created_at"],
    }
    if table == "vacation_requests":
        entry["full_name"] = row.get("full_name")
        entry["summary"] = f"{row.get('full_name')} ha solicitado vacaciones con estado: {row.get('status_while_away') or ''}"
        entry["details"] = {"status_while_away": row.get("status_while_away")}
    elif table == "travel_notifications":
        entry["full_name"] = row.get("full_name")
        entry["summary"] = (
            f"{row.get('full_name')} viajará a {row.get('destination') or ''} "
            f"desde {_format_date(row.get('start_date'), '%d/%m')} hasta {_format_date(row.get('end_date'), '%d/%m')}"
        )
        entry["details"] = {
            "division": row.get("division"),
            "destination": row.get("destination"),
            "start_date": _format_date(row.get("start_date")),
            "end_date": _format_date(row.get("end_date")),
        }
    else:
        entry["requester"] = row.get("requester")
        entry["summary"] = f"{row.get('requester')} ha solicitado equipo: {row.get('equipment') or ''}"
        entry["details"] = {"equipment": row.get("equipment")}
    return entry


def build_feed(db: Session, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    store = RecordStore(db)
    entries: List[Dict[str, Any]] = []
    try:
        for table in REVIEWABLE_TABLES:
            entries.extend(_feed_entry(table, row) for row in store.select(table, order_by="created_at", descending=True))
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    entries.sort(key=lambda entry: _local(entry["created_at"]), reverse=True)
    return entries[: limit or settings.feed_limit]


# ---------------------------------------------------------------------------
# Vacation workflow
# ---------------------------------------------------------------------------


def _workflow_payload(record_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
    summary = summarize_workflow(row)
    return {
        "id": record_id,
        "steps": summary.steps,
        "step_details": [
            {
                "step": step,
                "label": WORKFLOW_STEP_LABELS[step],
                "value": value,
                "value_label": WORKFLOW_VALUE_LABELS.get(value, value),
                "options": list(WORKFLOW_STEPS[step]),
            }
            for step, value in summary.steps.items()
        ],
        "has_rejection": summary.has_rejection,
        "is_complete": summary.is_complete,
        "total_progress": summary.total_progress,
        "progress_percent": summary.progress_percent,
        "completed_steps": summary.completed_steps,
        "state": summary.state,
        "label": summary.label,
    }


def get_workflow(db: Session, record_id: str) -> Dict[str, Any]:
    try:
        row = RecordStore(db).get(VACATION_TABLE, record_id)
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    return _workflow_payload(record_id, row)


def update_workflow_step(db: Session, record_id: str, step: str, value: str) -> Dict[str, Any]:
    try:
        row = apply_step_update(RecordStore(db), record_id, step, value)
    except InvalidStepError as exc:
        logger.warning("Rejected workflow update of %s: %s", record_id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Valor inválido para {step}: {value}") from exc
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    return _workflow_payload(record_id, row)


# ---------------------------------------------------------------------------
# Equipment inventory
# ---------------------------------------------------------------------------


def _equipment_payload(row: Dict[str, Any], as_of: dt.date) -> Dict[str, Any]:
    result = compute_depreciation(row.get("purchase_date"), row.get("purchase_cost"), as_of)
    return {
        **row,
        "model_label": model_label(row.get("model")),
        "depreciation": asdict(result),
    }


def list_equipment(
    db: Session,
    query: Optional[str] = None,
    sort_field: str = "serial_number",
    descending: bool = False,
    as_of: Optional[dt.date] = None,
) -> List[Dict[str, Any]]:
    if sort_field not in EQUIPMENT_SORT_FIELDS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"No se puede ordenar por {sort_field}")
    try:
        rows = RecordStore(db).select(EQUIPMENT_TABLE, order_by="serial_number")
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    as_of = as_of or today()
    payloads = [_equipment_payload(row, as_of) for row in rows]
    return sort_rows(filter_rows(payloads, query, EQUIPMENT_SEARCH_FIELDS), sort_field, descending)


def get_equipment(db: Session, serial_number: str, as_of: Optional[dt.date] = None) -> Dict[str, Any]:
    try:
        row = RecordStore(db).get(EQUIPMENT_TABLE, serial_number)
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    return _equipment_payload(row, as_of or today())


def create_equipment(
    db: Session,
    serial_number: str,
    model: str,
    assigned_to: Optional[str],
    insured: bool,
    purchase_date: Optional[dt.date],
    purchase_cost: Optional[float],
) -> Dict[str, Any]:
    serial = (serial_number or "").strip()
    if not serial or model not in EQUIPMENT_MODELS or purchase_date is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Todos los campos son requeridos")
    if purchase_cost is None or not math.isfinite(purchase_cost) or purchase_cost < settings.min_purchase_cost:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El costo debe ser al menos {settings.min_purchase_cost:g}",
        )
    record = {
        "serial_number": serial,
        "model": model,
        "assigned_to": (assigned_to or "").strip() or None,
        "insured": insured,
        "purchase_date": purchase_date,
        "purchase_cost": purchase_cost,
    }
    try:
        row = RecordStore(db).insert(EQUIPMENT_TABLE, record)
    except DuplicateRecordError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El número de serie ya existe") from exc
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    logger.info("Created equipment %s", serial)
    return _equipment_payload(row, today())


def parse_cost(value: Any) -> float:
    """Read an edited cost the way a number input does: leading number or 0.

    Values that do not fit a finite float (NaN, ``1e400``) also read as 0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            cost = float(value)
        except OverflowError:
            return 0.0
    else:
        match = _LEADING_NUMBER.match(str(value or ""))
        if not match:
            return 0.0
        cost = float(match.group(0))
    return cost if math.isfinite(cost) else 0.0


def _normalize_equipment_value(field: str, value: Any) -> Any:
    if field == "purchase_cost":
        cost = parse_cost(value)
        if cost < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El costo debe ser mayor a 0")
        return cost
    if field == "model":
        if value not in EQUIPMENT_MODELS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Modelo desconocido: {value}")
        return value
    if field == "insured":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() == "true"
    if field == "purchase_date":
        if value in (None, ""):
            return None
        if isinstance(value, dt.date):
            return value
        try:
            return dt.date.fromisoformat(str(value))
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Fecha inválida") from exc
    # assigned_to
    text = "" if value is None else str(value).strip()
    return text or None


def update_equipment_field(db: Session, serial_number: str, field: str, value: Any) -> Dict[str, Any]:
    if field not in EQUIPMENT_EDITABLE_FIELDS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} no es editable")
    normalized = _normalize_equipment_value(field, value)
    try:
        row = RecordStore(db).update(EQUIPMENT_TABLE, serial_number, {field: normalized})
    except StoreError as exc:
        logger.warning("Update of %s on equipment %s failed: %s", field, serial_number, exc)
        raise _store_http_error(exc) from exc
    return _equipment_payload(row, today())


def get_equipment_depreciation(db: Session, serial_number: str) -> Dict[str, Any]:
    try:
        row = RecordStore(db).get(EQUIPMENT_TABLE, serial_number)
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    details = depreciation_details(row.get("purchase_date"), row.get("purchase_cost"))
    return {
        "serial_number": row["serial_number"],
        "purchase_date": row.get("purchase_date"),
        "purchase_cost": row.get("purchase_cost"),
        "yearly_depreciation": details[0].depreciation,
        "details": [asdict(detail) for detail in details],
    }


def export_equipment_xlsx(db: Session, as_of: Optional[dt.date] = None) -> bytes:
    as_of = as_of or today()
    wb = Workbook()
    ws = wb.active
    ws.title = "Inventario"
    ws.append(
        [
            "Serie",
            "Modelo",
            "Asignado a",
            "Asegurado",
            "Fecha de compra",
            "Costo",
            "Depreciación anual",
            "Años transcurridos",
            "Valor en libros",
            "Año 1",
            "Año 2",
            "Año 3",
            "Año 4",
            "Año 5",
        ]
    )
    for item in list_equipment(db, as_of=as_of):
        depreciation = item["depreciation"]
        ws.append(
            [
                item["serial_number"],
                item["model_label"],
                item.get("assigned_to") or "",
                "Sí" if item.get("insured") else "No",
                item.get("purchase_date"),
                item.get("purchase_cost"),
                round(depreciation["yearly_depreciation"], 2),
                round(depreciation["years_elapsed"], 2),
                round(depreciation["book_value"], 2),
                *[round(amount, 2) for amount in depreciation["depreciation_by_year"]],
            ]
        )
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------


def _month_start(value: dt.date) -> dt.date:
    return value.replace(day=1)


def _validate_news_type(news_type: str) -> None:
    if news_type not in NEWS_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Tipo de noticia desconocido: {news_type}")


def list_news(db: Session, query: Optional[str] = None) -> List[Dict[str, Any]]:
    try:
        rows = RecordStore(db).select(NEWS_TABLE, order_by="published_for", descending=True)
    except StoreError as exc:
        raise _store_http_error(exc) from exc
    return filter_rows(rows, query, NEWS_SEARCH_FIELDS)


def create_news(
    db: Session,
    title: str,
    content: str,
    news_type: str,
    is_active: bool,
    published_for: dt.date,
) -> Dict[str, Any]:
    if not title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El título es requerido")
    _validate_news_type(news_type)
    record = {
        "title": title.strip(),
        "content": content,
        "type": news_type,
        "is_active": is_active,
        "published_for": _month_start(published_for),
    }
    try:
        return RecordStore(db).insert(NEWS_TABLE, record)
    except StoreError as exc:
        raise _store_http_error(exc) from exc


def update_news(db: Session, news_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    fields = {key: value for key, value in updates.items() if value is not None}
    if "title" in fields:
        if not fields["title"].strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El título es requerido")
        fields["title"] = fields["title"].strip()
    if "type" in fields:
        _validate_news_type(fields["type"])
    if "published_for" in fields:
        fields["published_for"] = _month_start(fields["published_for"])
    try:
        store = RecordStore(db)
        if not fields:
            return store.get(NEWS_TABLE, news_id)
        return store.update(NEWS_TABLE, news_id, fields)
    except StoreError as exc:
        raise _store_http_error(exc) from exc


def toggle_news(db: Session, news_id: str) -> Dict[str, Any]:
    store = RecordStore(db)
    try:
        current = store.get(NEWS_TABLE, news_id)
        return store.update(NEWS_TABLE, news_id, {"is_active": not current["is_active"]})
    except StoreError as exc:
        raise _store_http_error(exc) from exc


def delete_news(db: Session, news_id: str) -> None:
    try:
        RecordStore(db).delete(NEWS_TABLE, news_id)
    except StoreError as exc:
        raise _store_http_error(exc) from exc


def export_news_csv(db: Session) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["ID", "Mes", "Título", "Tipo", "Contenido", "Activa", "Creado", "Actualizado"])
    for row in list_news(db):
        writer.writerow(
            [
                row["id"],
                _format_date(row["published_for"], "%Y-%m"),
                row["title"],
                row["type"],
                row["content"],
                "Sí" if row["is_active"] else "No",
                _local(row["created_at"]).strftime("%d/%m/%Y %H:%M"),
                _local(row["updated_at"]).strftime("%d/%m/%Y %H:%M"),
            ]
        )
    return buffer.getvalue()
