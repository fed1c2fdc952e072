"""Helpers for building task container ids."""
from __future__ import annotations

from typing import Optional

from app.config import settings

PROJECT_PREFIX = "project:"
DEPARTMENT_PREFIX = "department:"


def project_container(project_id: str) -> str:
    """Container id for the tasks of a project."""
    if not project_id:
        raise ValueError("project_id is required")
    return f"{PROJECT_PREFIX}{project_id}"


def department_container(department: Optional[str]) -> str:
    """Container id for non-project tasks of a department."""
    name = (department or "").strip() or settings.DEFAULT_CONTAINER
    return f"{DEPARTMENT_PREFIX}{name}"
