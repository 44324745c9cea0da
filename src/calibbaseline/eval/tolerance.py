from __future__ import annotations

import json
import math
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

TOLERANCE_SCHEMA_VERSION = "calibbaseline.tolerance.v0"
DEFAULT_RELATIVE_RATIO = 0.05


class ToleranceValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ToleranceSpec:
    translation_mm: float
    rotation_deg: float
    relative_ratio: float = DEFAULT_RELATIVE_RATIO

    def __post_init__(self) -> None:
        for name, label in (
            ("translation_mm", "translation threshold"),
            ("rotation_deg", "rotation threshold"),
            ("relative_ratio", "relative ratio threshold"),
        ):
            object.__setattr__(self, name, _require_threshold(getattr(self, name), label))
        _require(self.relative_ratio < 1.0, "relative ratio threshold must be < 1")


@dataclass(frozen=True)
class RatioCheck:
    baseline: float
    current: float
    ratio: float
    ok: bool
    reason: str = ""


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ToleranceValidationError(msg)


def _require_threshold(value: float, name: str) -> float:
    _require(isinstance(value, numbers.Real) and not isinstance(value, bool), f"{name} must be a number")
    value = float(value)
    _require(math.isfinite(value), f"{name} must be finite")
    _require(value >= 0.0, f"{name} must be >= 0")
    return value


def exceeds_absolute(error: float, threshold: float) -> bool:
    """
    Absolute rule: an error equal to the threshold still passes.

    A non-finite error (NaN in either transform) always fails.
    """
    return not math.isfinite(error) or error > threshold


def check_ratio(baseline: float, current: float, eps: float) -> RatioCheck:
    """
    Relative rule on baseline/current: fails outside [1 - eps, 1 + eps].

    The rule is asymmetric: with eps=0.05 a current value 5% below the
    baseline fails (ratio 1.0526) while one 5% above passes (ratio 0.9524).

    Identical values pass even when both are zero. A zero current value
    (with a non-zero baseline) and non-finite inputs always fail.
    """
    b = float(baseline)
    c = float(current)
    if not (math.isfinite(b) and math.isfinite(c)):
        return RatioCheck(baseline=b, current=c, ratio=float("nan"), ok=False, reason="non-finite value")
    if b == c:
        return RatioCheck(baseline=b, current=c, ratio=1.0, ok=True)
    if c == 0.0:
        return RatioCheck(baseline=b, current=c, ratio=float("inf"), ok=False, reason="current value is zero")
    ratio = b / c
    if not math.isfinite(ratio):
        return RatioCheck(baseline=b, current=c, ratio=ratio, ok=False, reason="non-finite value")
    if ratio > 1.0 + eps or ratio < 1.0 - eps:
        return RatioCheck(baseline=b, current=c, ratio=ratio, ok=False, reason="ratio out of tolerance")
    return RatioCheck(baseline=b, current=c, ratio=ratio, ok=True)


def check_ratio_vector(baseline: np.ndarray, current: np.ndarray, eps: float) -> list[RatioCheck]:
    b = np.asarray(baseline, dtype=np.float64).reshape(-1)
    c = np.asarray(current, dtype=np.float64).reshape(-1)
    if b.shape != c.shape:
        raise ValueError(f"vector length mismatch: {b.shape[0]} != {c.shape[0]}")
    return [check_ratio(float(bi), float(ci), eps) for bi, ci in zip(b, c)]


def load_tolerance_spec(path: Path) -> ToleranceSpec:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ToleranceValidationError(f"{path} is not valid JSON: {e}") from e
    return parse_tolerance_spec(data)


def parse_tolerance_spec(data: dict[str, Any]) -> ToleranceSpec:
    _require(isinstance(data, dict), "tolerance config must be a JSON object")
    _require(
        data.get("schema_version") == TOLERANCE_SCHEMA_VERSION,
        f"schema_version must be {TOLERANCE_SCHEMA_VERSION}",
    )

    t_raw = data.get("translation_error_threshold_mm")
    r_raw = data.get("rotation_error_threshold_deg")
    _require(t_raw is not None, "translation_error_threshold_mm is required")
    _require(r_raw is not None, "rotation_error_threshold_deg is required")
    eps_raw = data.get("relative_ratio_threshold", DEFAULT_RELATIVE_RATIO)

    try:
        t_mm = float(t_raw)
        r_deg = float(r_raw)
        eps = float(eps_raw)
    except (TypeError, ValueError) as e:
        raise ToleranceValidationError(f"thresholds must be numbers: {e}") from e

    return ToleranceSpec(translation_mm=t_mm, rotation_deg=r_deg, relative_ratio=eps)
