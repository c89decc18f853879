"""
Small utilities: attachment ids and JSON-safe conversion.

Rationale:
- One id batch per parse call keeps ids unique within a response and stable
  for the lifetime of that call.
- Convert pandas/numpy scalars to native Python types before they reach a
  pydantic model or a JSON response.
"""

import json
import uuid
from typing import Any

import numpy as np


def new_batch_id() -> str:
    """Short random token shared by every attachment produced in one call."""
    return uuid.uuid4().hex[:12]


def make_attachment_id(batch: str, index: int) -> str:
    return f"viz-{batch}-{index}"


def safe_json(obj: Any) -> Any:
    """
    Convert pandas/numpy types to Python native types.
    NaN becomes None so table cells stay JSON-serializable.
    """
    if isinstance(obj, (np.integer, np.floating, np.bool_)):
        return safe_json(obj.item())
    if isinstance(obj, float) and obj != obj:
        return None
    if isinstance(obj, (int, float, str, bool)) or obj is None:
        return obj
    if isinstance(obj, dict):
        return {safe_json(k): safe_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [safe_json(x) for x in obj]
    try:
        return json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return str(obj)
