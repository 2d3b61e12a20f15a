"""
JSON utilities using orjson for the Suggestion Engine
=====================================================

Provides a high-performance JSON interface using orjson while keeping the
standard json library call shapes (dumps/loads returning and taking str).
"""

import re

import orjson
from typing import Any, Optional


def dumps(obj: Any, indent: Optional[int] = None, default: callable = None) -> str:
    """
    Serialize obj to JSON string using orjson

    Args:
        obj: Object to serialize
        indent: Any non-None value pretty prints with two spaces
        default: Callable for objects that cannot be serialized (e.g., default=str)

    Returns:
        JSON string

    Note:
        orjson.dumps returns bytes, this function returns str for compatibility
    """
    option = orjson.OPT_NON_STR_KEYS

    if indent is not None:
        option |= orjson.OPT_INDENT_2

    return orjson.dumps(obj, default=default, option=option).decode('utf-8')


def loads(s: Any) -> Any:
    """
    Deserialize JSON (str or bytes) to a Python object using orjson

    Args:
        s: JSON document

    Returns:
        Python object
    """
    return orjson.loads(s)


_FENCE_PATTERN = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def loads_model_output(s: Any) -> Any:
    """
    Deserialize JSON returned by a suggestion service backed by a language model.

    Such services sometimes wrap the JSON body in a markdown code fence
    (```json ... ```); the fence is stripped before parsing.

    Raises:
        JSONDecodeError: When the payload is not valid JSON after stripping
    """
    if isinstance(s, (bytes, bytearray)):
        s = s.decode('utf-8')
    match = _FENCE_PATTERN.match(s)
    if match:
        s = match.group(1)
    return orjson.loads(s.strip())


# Provide compatibility constants
JSONDecodeError = orjson.JSONDecodeError
