"""Request validation before any provider is called."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from .errors import InputValidationError


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not any(str(v).strip() for v in value)
    return False


def split_keywords(value: Any) -> List[str]:
    """Accepts a comma-separated string or a list of strings."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [str(item).strip() for item in items if str(item).strip()]


def missing_fields(payload: Mapping[str, Any], required: Iterable[str]) -> List[str]:
    return [name for name in required if _is_blank(payload.get(name))]


def require_fields(payload: Mapping[str, Any], required: Iterable[str]) -> None:
    missing = missing_fields(payload, required)
    if missing:
        raise InputValidationError(f"All fields are required (missing: {', '.join(missing)})")


def require_api_key(payload: Mapping[str, Any], config: Dict[str, Any]) -> None:
    if not bool(config.get("llm", {}).get("require_caller_key", True)):
        return
    if _is_blank(payload.get("apiKey")):
        raise InputValidationError("API key is required")


def require_known_model(payload: Mapping[str, Any], config: Dict[str, Any]) -> str:
    alias = str(payload.get("model") or "").strip()
    if alias not in config.get("models", {}):
        raise InputValidationError(f"Invalid AI model selected: {alias}")
    return alias
