from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from xml.etree.ElementTree import Element, ElementTree, SubElement, indent

import defusedxml.ElementTree as ET
import numpy as np
from defusedxml import DefusedXmlException

logger = logging.getLogger(__name__)

AttributeValue = float | tuple[float, ...] | str


class DocumentUnreadableError(ValueError):
    pass


@dataclass(frozen=True)
class ResultNode:
    name: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    children: tuple[ResultNode, ...] = ()


@dataclass(frozen=True)
class ResultDocument:
    path: Path
    root: ResultNode


def load_result_document(path: str | Path) -> ResultDocument:
    """
    Read a calibration result file (XML) into a read-only node tree.

    Raises DocumentUnreadableError when the file is missing, unreadable or
    not well-formed.
    """
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise DocumentUnreadableError(f"cannot read {p}: {e}") from e
    doc = parse_result_document(data, path=p)
    logger.debug("Loaded %s (root <%s>)", p, doc.root.name)
    return doc


def parse_result_document(text: str | bytes, path: str | Path = "<memory>") -> ResultDocument:
    try:
        elem = ET.fromstring(text)
    except (ET.ParseError, DefusedXmlException) as e:
        raise DocumentUnreadableError(f"{path} is not a well-formed result document: {e}") from e
    return ResultDocument(path=Path(path), root=_to_node(elem))


def _to_node(elem: Element) -> ResultNode:
    return ResultNode(
        name=str(elem.tag),
        attributes=dict(elem.attrib),
        children=tuple(_to_node(c) for c in elem),
    )


def find_child(node: ResultNode, name: str) -> ResultNode | None:
    """First direct child called `name` (no recursion)."""
    for child in node.children:
        if child.name == name:
            return child
    return None


def find_path(node: ResultNode, path: Sequence[str]) -> ResultNode | None:
    cur: ResultNode | None = node
    for name in path:
        if cur is None:
            return None
        cur = find_child(cur, name)
    return cur


def _parse_numbers(raw: str) -> tuple[float, ...] | None:
    tokens = raw.split()
    if not tokens:
        return None
    try:
        return tuple(float(t) for t in tokens)
    except ValueError:
        return None


def get_attribute(node: ResultNode, name: str) -> AttributeValue | None:
    """
    Typed view of an attribute.

    One number -> float, several whitespace-separated numbers -> tuple of floats,
    anything else -> the raw string.
    """
    raw = node.attributes.get(name)
    if raw is None:
        return None
    numbers = _parse_numbers(raw)
    if numbers is None:
        return raw
    if len(numbers) == 1:
        return numbers[0]
    return numbers


def get_vector_attribute(node: ResultNode, name: str, length: int) -> np.ndarray | None:
    raw = node.attributes.get(name)
    if raw is None:
        return None
    numbers = _parse_numbers(raw)
    if numbers is None or len(numbers) != length:
        return None
    return np.asarray(numbers, dtype=np.float64)


def get_scalar_attribute(node: ResultNode, name: str) -> float | None:
    vec = get_vector_attribute(node, name, 1)
    if vec is None:
        return None
    return float(vec[0])


def _format_numbers(values: Sequence[float] | np.ndarray) -> str:
    return " ".join(repr(float(v)) for v in np.asarray(values, dtype=np.float64).reshape(-1))


def write_result_document(
    path: str | Path,
    *,
    transform_image_to_probe: Sequence[float] | np.ndarray,
    pre: Sequence[float] | np.ndarray,
    pre_confidence_level: float,
    plde: Sequence[float] | np.ndarray,
    plde_confidence_level: float,
    root_name: str = "CalibrationResultsDocument",
) -> Path:
    """
    Write a probe calibration result file with the layout read back by
    `calibbaseline.eval.baseline_comparison`.

    The 4x4 transform may be given as a matrix or as 16 row-major values.
    """
    transform = np.asarray(transform_image_to_probe, dtype=np.float64).reshape(16)
    pre = np.asarray(pre, dtype=np.float64).reshape(-1)
    plde = np.asarray(plde, dtype=np.float64).reshape(-1)
    if pre.shape != (9,):
        raise ValueError("PRE must have 9 components")
    if plde.shape != (3,):
        raise ValueError("PLDE must have 3 components")

    root = Element(root_name)
    results = SubElement(root, "CalibrationResults")
    SubElement(results, "CalibrationTransform", TransformImageToProbe=_format_numbers(transform))
    reports = SubElement(root, "ErrorReports")
    SubElement(
        reports,
        "PointReconstructionErrorAnalysis",
        PRE=_format_numbers(pre),
        ValidationDataConfidenceLevel=repr(float(pre_confidence_level)),
    )
    SubElement(
        reports,
        "PointLineDistanceErrorAnalysis",
        PLDE=_format_numbers(plde),
        ValidationDataConfidenceLevel=repr(float(plde_confidence_level)),
    )

    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    tree = ElementTree(root)
    indent(tree)
    tree.write(out, encoding="utf-8", xml_declaration=True)
    return out
