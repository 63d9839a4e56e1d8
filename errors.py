"""
Silver Ravens Engine v1.0 — Error Taxonomy
Failures are reported as result dicts, never raised. A failed call
leaves the faction untouched; the caller retries with corrected input.
"""

from enum import Enum


class ErrorCode(str, Enum):
    PRECONDITION_FAILED = "PreconditionFailed"        # budget, resources, limits, ordering
    INVALID_REFERENCE = "InvalidReference"            # missing team/officer/ally/event index
    AMBIGUOUS_CHOICE = "AmbiguousChoiceFailed"        # caller must pin a choice


def fail(code: ErrorCode, message: str, **extra) -> dict:
    result = {"success": False, "error": message, "code": code.value}
    result.update(extra)
    return result


def precondition(message: str, **extra) -> dict:
    return fail(ErrorCode.PRECONDITION_FAILED, message, **extra)


def invalid_reference(message: str, **extra) -> dict:
    return fail(ErrorCode.INVALID_REFERENCE, message, **extra)


def ambiguous(message: str, **extra) -> dict:
    return fail(ErrorCode.AMBIGUOUS_CHOICE, message, **extra)


def is_error(result: dict) -> bool:
    return isinstance(result, dict) and result.get("success") is False and "code" in result
