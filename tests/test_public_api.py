from __future__ import annotations


def test_public_api_exports() -> None:
    import calibbaseline as cb

    assert hasattr(cb, "compare_calibration_results")
    assert hasattr(cb, "load_result_document")
    assert hasattr(cb, "RigidTransform")
    assert hasattr(cb, "ToleranceSpec")
