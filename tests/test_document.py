from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from calibbaseline.document import (
    DocumentUnreadableError,
    find_child,
    find_path,
    get_attribute,
    get_scalar_attribute,
    get_vector_attribute,
    load_result_document,
    parse_result_document,
    write_result_document,
)

_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Results>
  <Section Name="first" Values="1 2 3" Level="0.95"/>
  <Section Name="second"/>
  <Other Label="probe" Empty=""/>
</Results>
"""


def test_find_child_first_match_wins():
    doc = parse_result_document(_XML)
    node = find_child(doc.root, "Section")
    assert node is not None
    assert node.attributes["Name"] == "first"
    assert find_child(doc.root, "Missing") is None


def test_find_child_is_single_level():
    doc = parse_result_document("<A><B><C/></B></A>")
    assert find_child(doc.root, "C") is None
    assert find_path(doc.root, ("B", "C")) is not None
    assert find_path(doc.root, ("C", "B")) is None


def test_vector_attribute_requires_declared_length():
    node = find_child(parse_result_document(_XML).root, "Section")
    vec = get_vector_attribute(node, "Values", 3)
    assert vec is not None
    assert vec.dtype == np.float64
    assert np.array_equal(vec, [1.0, 2.0, 3.0])
    assert get_vector_attribute(node, "Values", 9) is None
    assert get_vector_attribute(node, "Nope", 3) is None
    assert get_vector_attribute(node, "Name", 1) is None


def test_scalar_attribute():
    node = find_child(parse_result_document(_XML).root, "Section")
    assert get_scalar_attribute(node, "Level") == pytest.approx(0.95)
    assert get_scalar_attribute(node, "Values") is None
    assert get_scalar_attribute(node, "Name") is None


def test_get_attribute_types():
    root = parse_result_document(_XML).root
    section = find_child(root, "Section")
    other = find_child(root, "Other")
    assert get_attribute(section, "Level") == pytest.approx(0.95)
    assert get_attribute(section, "Values") == (1.0, 2.0, 3.0)
    assert get_attribute(other, "Label") == "probe"
    assert get_attribute(other, "Empty") == ""
    assert get_attribute(other, "Nope") is None


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(DocumentUnreadableError):
        load_result_document(tmp_path / "does_not_exist.xml")


def test_load_malformed_file(tmp_path: Path) -> None:
    p = tmp_path / "broken.xml"
    p.write_text("<Results><CalibrationResults></Results>", encoding="utf-8")
    with pytest.raises(DocumentUnreadableError):
        load_result_document(p)


def test_entity_expansion_is_rejected() -> None:
    bomb = '<?xml version="1.0"?><!DOCTYPE r [<!ENTITY a "aaaa"><!ENTITY b "&a;&a;">]><r x="&b;"/>'
    with pytest.raises(DocumentUnreadableError):
        parse_result_document(bomb)


def test_write_then_load(tmp_path: Path) -> None:
    T = np.eye(4)
    T[:3, 3] = [1.5, -2.0, 0.1]
    path = write_result_document(
        tmp_path / "out" / "result.xml",
        transform_image_to_probe=T,
        pre=np.linspace(0.1, 0.9, 9),
        pre_confidence_level=0.95,
        plde=[0.5, 0.25, 0.125],
        plde_confidence_level=0.9,
    )
    doc = load_result_document(path)
    transform = find_path(doc.root, ("CalibrationResults", "CalibrationTransform"))
    assert transform is not None
    assert np.array_equal(get_vector_attribute(transform, "TransformImageToProbe", 16), T.reshape(16))
    pre_node = find_path(doc.root, ("ErrorReports", "PointReconstructionErrorAnalysis"))
    assert np.array_equal(get_vector_attribute(pre_node, "PRE", 9), np.linspace(0.1, 0.9, 9))
    assert get_scalar_attribute(pre_node, "ValidationDataConfidenceLevel") == 0.95


def test_write_rejects_wrong_metric_length(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        write_result_document(
            tmp_path / "result.xml",
            transform_image_to_probe=np.eye(4),
            pre=np.ones(8),
            pre_confidence_level=0.95,
            plde=np.ones(3),
            plde_confidence_level=0.95,
        )
