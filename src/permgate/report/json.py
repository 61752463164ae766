"""
JSON report for evaluation results.

Produces structured output for programmatic consumption: the verdict, every
passed and failed validation, and raised errors rendered as type, message and
the validation that raised them.
"""

import json
from datetime import UTC, datetime
from typing import Any

from permgate.engine import Result


def generate_json_report(
    result: Result,
    policy: dict[str, Any] | None = None,
    indent: int = 2,
) -> str:
    """
    Generate a JSON report for a result.

    Args:
        result: The evaluation result
        policy: Optional descriptor dict to embed (descriptor.to_dict())
        indent: JSON indentation level (default: 2)

    Returns:
        JSON string with the full report
    """
    report = build_result_dict(result, policy)
    return json.dumps(report, indent=indent, default=_json_serializer)


def build_result_dict(
    result: Result,
    policy: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the report dictionary for a result."""
    data = result.to_dict()
    for entry, error in zip(data["thrown_errors"], result.thrown_errors):
        entry["notes"] = list(getattr(error, "__notes__", ()))

    return {
        "report_version": "1.0",
        "generated_at": datetime.now(UTC).isoformat(),
        "policy": policy,
        "result": data,
        "summary": {
            "passed": len(result.passed_validations),
            "failed": len(result.failed_validations),
            "raised": len(result.thrown_errors),
        },
    }


def _json_serializer(obj: Any) -> Any:
    """Serialize explanations that json can't handle natively."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return str(obj)
