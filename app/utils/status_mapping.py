"""Canonical mapping from free-form status/priority labels to enums.

Earlier data stored status and priority as display strings (partly in
Spanish) and classified them by substring matching in each view. All of
that is resolved here, once, at the boundary.
"""
from __future__ import annotations

import unicodedata
from typing import Dict, Union

from app.models.task import TaskPriority, TaskStatus


def _normalize(label: str) -> str:
    decomposed = unicodedata.normalize("NFKD", label)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.replace("_", " ").replace("-", " ").lower().split())


STATUS_ALIASES: Dict[str, TaskStatus] = {
    "pending": TaskStatus.PENDING,
    "pendiente": TaskStatus.PENDING,
    "planificacion": TaskStatus.PENDING,
    "not started": TaskStatus.PENDING,
    "in progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "en progreso": TaskStatus.IN_PROGRESS,
    "en curso": TaskStatus.IN_PROGRESS,
    "ejecucion": TaskStatus.IN_PROGRESS,
    "en ejecucion": TaskStatus.IN_PROGRESS,
    "at risk": TaskStatus.AT_RISK,
    "atrisk": TaskStatus.AT_RISK,
    "en riesgo": TaskStatus.AT_RISK,
    "atrasado": TaskStatus.AT_RISK,
    "delayed": TaskStatus.AT_RISK,
    "completed": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
    "completado": TaskStatus.COMPLETED,
    "finalizado": TaskStatus.COMPLETED,
    "cancelled": TaskStatus.CANCELLED,
    "canceled": TaskStatus.CANCELLED,
    "cancelado": TaskStatus.CANCELLED,
    "detenido": TaskStatus.CANCELLED,
}

PRIORITY_ALIASES: Dict[str, TaskPriority] = {
    "low": TaskPriority.LOW,
    "baja": TaskPriority.LOW,
    "medium": TaskPriority.MEDIUM,
    "media": TaskPriority.MEDIUM,
    "normal": TaskPriority.MEDIUM,
    "high": TaskPriority.HIGH,
    "alta": TaskPriority.HIGH,
    "critical": TaskPriority.CRITICAL,
    "critica": TaskPriority.CRITICAL,
}

STATUS_TONES: Dict[TaskStatus, str] = {
    TaskStatus.PENDING: "neutral",
    TaskStatus.IN_PROGRESS: "info",
    TaskStatus.AT_RISK: "danger",
    TaskStatus.COMPLETED: "success",
    TaskStatus.CANCELLED: "warning",
}

PRIORITY_TONES: Dict[TaskPriority, str] = {
    TaskPriority.LOW: "neutral",
    TaskPriority.MEDIUM: "info",
    TaskPriority.HIGH: "warning",
    TaskPriority.CRITICAL: "danger",
}


def parse_status(value: Union[str, TaskStatus]) -> TaskStatus:
    """Resolve a status label (enum value or legacy label) to ``TaskStatus``."""
    if isinstance(value, TaskStatus):
        return value
    key = _normalize(str(value))
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return TaskStatus(key.upper().replace(" ", "_"))
    except ValueError:
        raise ValueError(f"Unknown task status: {value!r}") from None


def parse_priority(value: Union[str, TaskPriority]) -> TaskPriority:
    """Resolve a priority label to ``TaskPriority``."""
    if isinstance(value, TaskPriority):
        return value
    key = _normalize(str(value))
    if key in PRIORITY_ALIASES:
        return PRIORITY_ALIASES[key]
    raise ValueError(f"Unknown task priority: {value!r}")


def status_tone(status: Union[str, TaskStatus]) -> str:
    return STATUS_TONES[parse_status(status)]


def priority_tone(priority: Union[str, TaskPriority]) -> str:
    return PRIORITY_TONES[parse_priority(priority)]
