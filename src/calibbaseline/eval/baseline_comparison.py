from __future__ import annotations

import enum
import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from calibbaseline.core.geometry import RigidTransform, rotation_error, translation_error
from calibbaseline.document import (
    DocumentUnreadableError,
    ResultDocument,
    ResultNode,
    find_child,
    get_scalar_attribute,
    get_vector_attribute,
    load_result_document,
)
from calibbaseline.eval.tolerance import (
    DEFAULT_RELATIVE_RATIO,
    RatioCheck,
    ToleranceSpec,
    check_ratio,
    check_ratio_vector,
    exceeds_absolute,
)

logger = logging.getLogger(__name__)


class FailureKind(enum.Enum):
    DOCUMENT_UNREADABLE = "document_unreadable"
    SECTION_MISSING = "section_missing"
    ATTRIBUTE_MISSING = "attribute_missing"
    TOLERANCE_EXCEEDED = "tolerance_exceeded"


def _json_number(value: float | None) -> float | str | None:
    # JSON has no NaN/Infinity; keep them readable as "nan", "inf", "-inf".
    if value is None or math.isfinite(value):
        return value
    return str(float(value))


@dataclass(frozen=True)
class FailureRecord:
    kind: FailureKind
    field: str
    message: str
    baseline: float | None = None
    current: float | None = None
    threshold: float | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "field": self.field,
            "message": self.message,
            "baseline": _json_number(self.baseline),
            "current": _json_number(self.current),
            "threshold": _json_number(self.threshold),
        }


@dataclass
class ComparisonVerdict:
    baseline_path: Path
    current_path: Path
    failures: list[FailureRecord] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def passed(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, object]:
        return {
            "baseline_file": str(self.baseline_path),
            "current_file": str(self.current_path),
            "failure_count": self.failure_count,
            "passed": self.passed,
            "failures": [f.to_dict() for f in self.failures],
        }

    def write_json(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True, allow_nan=False), encoding="utf-8")
        return path


RULE_TRANSFORM = "transform"
RULE_RATIO_VECTOR = "ratio_vector"
RULE_RATIO_SCALAR = "ratio_scalar"


@dataclass(frozen=True)
class FieldCheck:
    section: tuple[str, ...]
    attribute: str
    rule: str
    length: int = 1
    label: str = ""

    @property
    def name(self) -> str:
        return self.label or self.attribute


@dataclass(frozen=True)
class ComparisonSchema:
    checks: tuple[FieldCheck, ...]
    root_name: str | None = None


PROBE_CALIBRATION_SCHEMA = ComparisonSchema(
    checks=(
        FieldCheck(
            section=("CalibrationResults", "CalibrationTransform"),
            attribute="TransformImageToProbe",
            rule=RULE_TRANSFORM,
            length=16,
        ),
        FieldCheck(
            section=("ErrorReports", "PointReconstructionErrorAnalysis"),
            attribute="PRE",
            rule=RULE_RATIO_VECTOR,
            length=9,
        ),
        FieldCheck(
            section=("ErrorReports", "PointReconstructionErrorAnalysis"),
            attribute="ValidationDataConfidenceLevel",
            rule=RULE_RATIO_SCALAR,
            label="PRE ValidationDataConfidenceLevel",
        ),
        FieldCheck(
            section=("ErrorReports", "PointLineDistanceErrorAnalysis"),
            attribute="PLDE",
            rule=RULE_RATIO_VECTOR,
            length=3,
        ),
        FieldCheck(
            section=("ErrorReports", "PointLineDistanceErrorAnalysis"),
            attribute="ValidationDataConfidenceLevel",
            rule=RULE_RATIO_SCALAR,
            label="PLDE ValidationDataConfidenceLevel",
        ),
    ),
)


def compare_calibration_results(
    baseline_path: Path,
    current_path: Path,
    translation_threshold: float,
    rotation_threshold: float,
    relative_ratio_threshold: float = DEFAULT_RELATIVE_RATIO,
    schema: ComparisonSchema = PROBE_CALIBRATION_SCHEMA,
) -> ComparisonVerdict:
    """
    Compare a freshly computed calibration result file against a recorded baseline.

    A zero failure count means the current result reproduces the baseline.
    """
    tolerances = ToleranceSpec(
        translation_mm=float(translation_threshold),
        rotation_deg=float(rotation_threshold),
        relative_ratio=float(relative_ratio_threshold),
    )
    verdict = ComparisonVerdict(baseline_path=Path(baseline_path), current_path=Path(current_path))

    documents: list[ResultDocument] = []
    for role, path in (("baseline", baseline_path), ("current", current_path)):
        try:
            documents.append(load_result_document(path))
        except DocumentUnreadableError as e:
            _fail(
                verdict,
                FailureRecord(
                    kind=FailureKind.DOCUMENT_UNREADABLE,
                    field=role,
                    message=f"Reading {role} data file failed: {e}",
                ),
            )
            return verdict

    baseline, current = documents
    return _compare(baseline, current, tolerances, schema, verdict)


def compare_result_documents(
    baseline: ResultDocument,
    current: ResultDocument,
    tolerances: ToleranceSpec,
    schema: ComparisonSchema = PROBE_CALIBRATION_SCHEMA,
) -> ComparisonVerdict:
    verdict = ComparisonVerdict(baseline_path=baseline.path, current_path=current.path)
    return _compare(baseline, current, tolerances, schema, verdict)


def _compare(
    baseline: ResultDocument,
    current: ResultDocument,
    tolerances: ToleranceSpec,
    schema: ComparisonSchema,
    verdict: ComparisonVerdict,
) -> ComparisonVerdict:
    if schema.root_name is not None:
        for role, doc in (("baseline", baseline), ("current", current)):
            if doc.root.name != schema.root_name:
                _fail(
                    verdict,
                    FailureRecord(
                        kind=FailureKind.SECTION_MISSING,
                        field=schema.root_name,
                        message=f"Reading {role} {schema.root_name} tag failed: {doc.path} (root is <{doc.root.name}>)",
                    ),
                )
                return verdict

    # Section prefixes already reported missing; checks below them are skipped.
    missing: set[tuple[str, ...]] = set()
    for check in schema.checks:
        nodes = _resolve_section(baseline, current, check.section, missing, verdict)
        if nodes is None:
            continue
        bl_node, cur_node = nodes
        if check.rule == RULE_TRANSFORM:
            _check_transform(check, bl_node, cur_node, tolerances, verdict)
        elif check.rule == RULE_RATIO_VECTOR:
            _check_ratio_vector(check, bl_node, cur_node, tolerances, verdict)
        elif check.rule == RULE_RATIO_SCALAR:
            _check_ratio_scalar(check, bl_node, cur_node, tolerances, verdict)
        else:
            raise ValueError(f"Unsupported comparison rule: {check.rule}")

    if verdict.passed:
        logger.info("Calibration results match baseline %s", verdict.baseline_path)
    else:
        logger.info("%d difference(s) from baseline %s", verdict.failure_count, verdict.baseline_path)
    return verdict


def _resolve_section(
    baseline: ResultDocument,
    current: ResultDocument,
    section: tuple[str, ...],
    missing: set[tuple[str, ...]],
    verdict: ComparisonVerdict,
) -> tuple[ResultNode, ResultNode] | None:
    bl: ResultNode = baseline.root
    cur: ResultNode = current.root
    for depth, name in enumerate(section, start=1):
        prefix = section[:depth]
        if prefix in missing:
            return None
        bl_child = find_child(bl, name)
        cur_child = find_child(cur, name)
        if bl_child is None or cur_child is None:
            missing.add(prefix)
            where = [
                f"{role} ({doc.path})"
                for role, doc, node in (("baseline", baseline, bl_child), ("current", current, cur_child))
                if node is None
            ]
            _fail(
                verdict,
                FailureRecord(
                    kind=FailureKind.SECTION_MISSING,
                    field="/".join(prefix),
                    message=f"Reading {name} tag failed in {' and '.join(where)}",
                ),
            )
            return None
        bl, cur = bl_child, cur_child
    return bl, cur


def _fetch_pair(
    check: FieldCheck,
    bl_node: ResultNode,
    cur_node: ResultNode,
    verdict: ComparisonVerdict,
) -> tuple[np.ndarray, np.ndarray] | None:
    bl_value = get_vector_attribute(bl_node, check.attribute, check.length)
    if bl_value is None:
        _missing_attribute(check, "Baseline", verdict)
        return None
    cur_value = get_vector_attribute(cur_node, check.attribute, check.length)
    if cur_value is None:
        _missing_attribute(check, "Current", verdict)
        return None
    return bl_value, cur_value


def _missing_attribute(check: FieldCheck, role: str, verdict: ComparisonVerdict) -> None:
    suffix = "" if check.length == 1 else f" ({check.length} values expected)"
    _fail(
        verdict,
        FailureRecord(
            kind=FailureKind.ATTRIBUTE_MISSING,
            field=check.name,
            message=f"{role} {check.name} is missing{suffix}",
        ),
    )


def _check_transform(
    check: FieldCheck,
    bl_node: ResultNode,
    cur_node: ResultNode,
    tolerances: ToleranceSpec,
    verdict: ComparisonVerdict,
) -> None:
    pair = _fetch_pair(check, bl_node, cur_node, verdict)
    if pair is None:
        return
    bl_transform = RigidTransform.from_row_major(pair[0])
    cur_transform = RigidTransform.from_row_major(pair[1])

    t_err = translation_error(bl_transform, cur_transform)
    logger.debug("%s translation error: %.6g mm", check.name, t_err)
    _check_absolute(f"{check.name} translation", t_err, tolerances.translation_mm, "mm", verdict)

    r_err = rotation_error(bl_transform, cur_transform)
    logger.debug("%s rotation error: %.6g deg", check.name, r_err)
    _check_absolute(f"{check.name} rotation", r_err, tolerances.rotation_deg, "degree", verdict)


def _check_absolute(name: str, error: float, threshold: float, unit: str, verdict: ComparisonVerdict) -> None:
    if not exceeds_absolute(error, threshold):
        return
    if math.isfinite(error):
        detail = f"{name} error is higher than expected: {error:.6g} {unit} (threshold: {threshold:g} {unit})"
    else:
        detail = f"{name} error is not finite (non-finite value in transform, threshold: {threshold:g} {unit})"
    _fail(
        verdict,
        FailureRecord(
            kind=FailureKind.TOLERANCE_EXCEEDED,
            field=name,
            message=detail,
            current=error,
            threshold=threshold,
        ),
    )


def _check_ratio_vector(
    check: FieldCheck,
    bl_node: ResultNode,
    cur_node: ResultNode,
    tolerances: ToleranceSpec,
    verdict: ComparisonVerdict,
) -> None:
    pair = _fetch_pair(check, bl_node, cur_node, verdict)
    if pair is None:
        return
    results = check_ratio_vector(pair[0], pair[1], tolerances.relative_ratio)
    for i, res in enumerate(results):
        if not res.ok:
            _ratio_failure(f"{check.name} element ({i})", res, tolerances, verdict)


def _check_ratio_scalar(
    check: FieldCheck,
    bl_node: ResultNode,
    cur_node: ResultNode,
    tolerances: ToleranceSpec,
    verdict: ComparisonVerdict,
) -> None:
    bl_value = get_scalar_attribute(bl_node, check.attribute)
    if bl_value is None:
        _missing_attribute(check, "Baseline", verdict)
        return
    cur_value = get_scalar_attribute(cur_node, check.attribute)
    if cur_value is None:
        _missing_attribute(check, "Current", verdict)
        return
    res = check_ratio(bl_value, cur_value, tolerances.relative_ratio)
    if not res.ok:
        _ratio_failure(check.name, res, tolerances, verdict)


def _ratio_failure(name: str, res: RatioCheck, tolerances: ToleranceSpec, verdict: ComparisonVerdict) -> None:
    _fail(
        verdict,
        FailureRecord(
            kind=FailureKind.TOLERANCE_EXCEEDED,
            field=name,
            message=(
                f"{name} mismatch: current={res.current:g}, baseline={res.baseline:g} "
                f"({res.reason}, allowed ratio 1 +/- {tolerances.relative_ratio:g})"
            ),
            baseline=res.baseline,
            current=res.current,
            threshold=tolerances.relative_ratio,
        ),
    )


def _fail(verdict: ComparisonVerdict, record: FailureRecord) -> None:
    logger.error(record.message)
    verdict.failures.append(record)
