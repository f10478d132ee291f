from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class AppError(Exception):
    status_code: int
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


def not_found(entity: str, entity_id: str) -> AppError:
    """Domain-level "not found" for an id that does not resolve."""

    label = entity.replace("_", " ").capitalize()
    return AppError(404, f"{entity}_not_found", f"{label} not found", {"id": entity_id})


def error_response(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }
