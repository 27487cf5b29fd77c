import re
from typing import Annotated, Any, Dict, Optional

from markupsafe import Markup
from pydantic import BeforeValidator


_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_string(value: Optional[str]) -> str:
    """Strip markup and control characters from free-text input."""
    if value is None:
        return ""
    text = _CONTROL_CHARS.sub("", str(value))
    if "<" in text or "&" in text:
        text = Markup(text).striptags()
    return text.strip()


def _sanitize(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_string(value)
    return value


# Schema field type for user-supplied free text
SanitizedStr = Annotated[str, BeforeValidator(_sanitize)]


def sanitize_mapping(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize the top-level string values of a loosely typed JSON body."""
    return {key: _sanitize(value) for key, value in (payload or {}).items()}
