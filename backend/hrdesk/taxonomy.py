"""Fixed value sets of the persisted status fields.

The values are part of the stored data contract and must not be renamed.
Labels are the Spanish strings shown on the dashboard.
"""

from __future__ import annotations

from typing import Dict, Tuple

REVIEW_STATUSES: Tuple[str, ...] = ("unreviewed", "in_progress", "done")
DEFAULT_REVIEW_STATUS = "unreviewed"

REVIEW_STATUS_LABELS: Dict[str, str] = {
    "unreviewed": "Sin revisar",
    "in_progress": "Pendiente",
    "done": "Hecho",
}

# Tables whose rows carry a review_status field
REVIEWABLE_TABLES: Tuple[str, ...] = (
    "vacation_requests",
    "travel_notifications",
    "it_equipment_requests",
)

REVIEWABLE_TYPE_LABELS: Dict[str, str] = {
    "vacation_requests": "Vacaciones",
    "travel_notifications": "Viaje",
    "it_equipment_requests": "Equipo TI",
}

STEP_PENDING = "pendiente"

# Ordered workflow steps of a vacation request and their allowed values.
# The first value of every step is its no-progress default.
WORKFLOW_STEPS: Dict[str, Tuple[str, ...]] = {
    "step1_auth_manager": ("pendiente", "aprobado", "rechazado"),
    "step2_auth_rh": ("pendiente", "aprobado", "rechazado"),
    "step3_contract_signature": ("pendiente", "enviado", "recibido"),
    "step4_congratulations_email": ("pendiente", "listo"),
}

WORKFLOW_STEP_LABELS: Dict[str, str] = {
    "step1_auth_manager": "Paso 1: AUT MANAGER",
    "step2_auth_rh": "Paso 2: AUT RH",
    "step3_contract_signature": "Paso 3: Firma de contrato",
    "step4_congratulations_email": "Paso 4: Email Felicitaciones",
}

WORKFLOW_VALUE_LABELS: Dict[str, str] = {
    "pendiente": "Pendiente",
    "aprobado": "Aprobado",
    "rechazado": "Rechazado",
    "enviado": "Enviado",
    "recibido": "Recibido",
    "listo": "Listo",
}

EQUIPMENT_MODELS: Tuple[str, ...] = ("mac_pro", "mac_air", "lenovo")

EQUIPMENT_MODEL_LABELS: Dict[str, str] = {
    "mac_pro": "Mac Pro",
    "mac_air": "Mac Air",
    "lenovo": "Lenovo",
}

NEWS_TYPES: Tuple[str, ...] = ("slide", "text")


def model_label(model: str | None) -> str:
    if model is None:
        return ""
    return EQUIPMENT_MODEL_LABELS.get(model, model)
