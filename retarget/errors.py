"""
Retarget Estimator Errors

Structured exceptions raised at the *boundaries* of the estimator: parameter
profiles, configuration and block-sample construction. The estimation path
itself never raises for valid samples; insufficient data resolves to a neutral
estimate and an empty cache resolves to ``None``.

Design goals
------------
- Stable, integer error codes (see `ErrorCode`).
- Human-friendly messages with optional rich context.
- Safe to log: context is shallow-copied.
- Play nicely with `raise ... from cause` and `__cause__`.

Subclasses
----------
- ParamsError         : invalid estimator parameters or profile files.
- ConfigError         : invalid configuration values or files.
- InvalidSampleError  : a block sample that violates its invariants.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Mapping, Optional


class ErrorCode(IntEnum):
    """Stable error codes for estimator exceptions."""
    ESTIMATOR_GENERIC = 3000
    PARAMS            = 3001
    CONFIG            = 3002
    INVALID_SAMPLE    = 3003


class EstimatorError(Exception):
    """
    Base class for estimator exceptions.

    Parameters
    ----------
    message : str
        Human-readable description.
    code : ErrorCode | int
        Stable code for programmatic handling (default: ESTIMATOR_GENERIC).
    context : Mapping[str, Any] | None
        Optional structured fields (small dict).
    cause : BaseException | None
        Optional underlying exception; also set via `raise ... from ...`.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | int = ErrorCode.ESTIMATOR_GENERIC,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: int = int(code)
        self.context: Dict[str, Any] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:  # pragma: no cover - trivial
        tail = f" context={self.context}" if self.context else ""
        return f"[{self.code}] {self.message}{tail}"

    def to_dict(self) -> Dict[str, Any]:
        """Structured view suitable for logs or HTTP error bodies."""
        out: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.context:
            out["context"] = self.context
        return out


class ParamsError(EstimatorError):
    """
    Raised when an estimator parameter set is invalid or a profile file
    cannot be read.

    Common fields
    -------------
    - field   : parameter name (e.g. "target_spacing_s")
    - value   : offending value
    - path    : profile file path, when loading from disk
    - network : profile the value belongs to
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        path: Optional[str] = None,
        network: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if field is not None:
            base["field"] = field
        if value is not None:
            base["value"] = value
        if path is not None:
            base["path"] = path
        if network is not None:
            base["network"] = network
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.PARAMS, context=base, cause=cause)

    @classmethod
    def out_of_range(cls, *, field: str, value: Any, expected: str) -> "ParamsError":
        return cls(
            f"Parameter {field} out of range: expected {expected}, got {value!r}",
            field=field,
            value=value,
        )


class ConfigError(EstimatorError):
    """
    Raised for unknown enum names, malformed environment values or unreadable
    configuration files.
    """

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        value: Any = None,
        path: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if key is not None:
            base["key"] = key
        if value is not None:
            base["value"] = value
        if path is not None:
            base["path"] = path
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.CONFIG, context=base, cause=cause)

    @classmethod
    def unknown_choice(cls, *, key: str, value: Any, choices: tuple[str, ...]) -> "ConfigError":
        return cls(
            f"Unknown {key} {value!r}; expected one of {', '.join(choices)}",
            key=key,
            value=value,
        )


class InvalidSampleError(EstimatorError):
    """
    Raised when a block sample has a negative height or a non-positive /
    non-finite difficulty. Timestamps are never rejected here.
    """

    def __init__(
        self,
        message: str,
        *,
        height: Optional[int] = None,
        difficulty: Optional[float] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if height is not None:
            base["height"] = height
        if difficulty is not None:
            base["difficulty"] = difficulty
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.INVALID_SAMPLE, context=base, cause=cause)


__all__ = [
    "ErrorCode",
    "EstimatorError",
    "ParamsError",
    "ConfigError",
    "InvalidSampleError",
]
