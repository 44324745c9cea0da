from calibbaseline.core.geometry import RigidTransform, rotation_error, translation_error
from calibbaseline.document import ResultDocument, load_result_document
from calibbaseline.eval.baseline_comparison import ComparisonVerdict, compare_calibration_results
from calibbaseline.eval.tolerance import ToleranceSpec

__all__ = [
    "RigidTransform",
    "rotation_error",
    "translation_error",
    "ResultDocument",
    "load_result_document",
    "ToleranceSpec",
    "ComparisonVerdict",
    "compare_calibration_results",
]
