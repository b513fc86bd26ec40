"""Best-effort JSON helpers"""
import json
from typing import Any, Optional


def try_parse_json(text: Any) -> Optional[Any]:
    """Parse text as JSON, returning None when it is not a string or not valid JSON"""
    if not isinstance(text, (str, bytes, bytearray)):
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None
