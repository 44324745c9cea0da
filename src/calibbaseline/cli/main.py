from __future__ import annotations

import argparse
import logging
from pathlib import Path

from calibbaseline.eval.baseline_comparison import compare_calibration_results
from calibbaseline.eval.tolerance import (
    DEFAULT_RELATIVE_RATIO,
    ToleranceSpec,
    ToleranceValidationError,
    load_tolerance_spec,
)

# 1=error only, 2=warning, 3=info, 4=debug, 5=trace
VERBOSE_LEVELS = {
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
    5: logging.DEBUG,
}


def setup_logging(verbose: int = 3) -> None:
    logging.basicConfig(
        level=VERBOSE_LEVELS.get(verbose, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="calibbaseline",
        description="Compare probe calibration results against a recorded baseline.",
    )
    parser.add_argument("--baseline-file", type=Path, required=True, help="Baseline calibration results (XML).")
    parser.add_argument("--current-file", type=Path, required=True, help="Newly computed calibration results (XML).")
    parser.add_argument(
        "--translation-error-threshold",
        type=float,
        default=None,
        help="Translation error threshold in mm.",
    )
    parser.add_argument(
        "--rotation-error-threshold",
        type=float,
        default=None,
        help="Rotation error threshold in degrees.",
    )
    parser.add_argument(
        "--relative-ratio-threshold",
        type=float,
        default=None,
        help=f"Allowed baseline/current ratio deviation for error metrics (default: {DEFAULT_RELATIVE_RATIO}).",
    )
    parser.add_argument(
        "--tolerance-config",
        type=Path,
        default=None,
        help="JSON file with thresholds (command-line values take precedence).",
    )
    parser.add_argument("--report-json", type=Path, default=None, help="Write the comparison verdict as JSON.")
    parser.add_argument(
        "--verbose",
        type=int,
        default=3,
        choices=sorted(VERBOSE_LEVELS),
        help="Verbose level (1=error only, 2=warning, 3=info, 4=debug, 5=trace).",
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        tolerances = _resolve_tolerances(args)
    except (OSError, ToleranceValidationError) as e:
        parser.error(str(e))

    verdict = compare_calibration_results(
        args.baseline_file,
        args.current_file,
        translation_threshold=tolerances.translation_mm,
        rotation_threshold=tolerances.rotation_deg,
        relative_ratio_threshold=tolerances.relative_ratio,
    )

    if args.report_json is not None:
        out = verdict.write_json(args.report_json)
        print(f"Wrote {out}")

    if not verdict.passed:
        logging.getLogger(__name__).error(
            "Comparison of calibration data to baseline failed (%d failure(s))", verdict.failure_count
        )
        print("Exit failure!!!")
        return 1

    print("Exit success!!!")
    return 0


def _resolve_tolerances(args: argparse.Namespace) -> ToleranceSpec:
    base = load_tolerance_spec(args.tolerance_config) if args.tolerance_config is not None else None

    translation = args.translation_error_threshold
    rotation = args.rotation_error_threshold
    ratio = args.relative_ratio_threshold
    if base is not None:
        translation = base.translation_mm if translation is None else translation
        rotation = base.rotation_deg if rotation is None else rotation
        ratio = base.relative_ratio if ratio is None else ratio

    if translation is None or rotation is None:
        raise ToleranceValidationError(
            "--translation-error-threshold and --rotation-error-threshold are required "
            "(or provide them with --tolerance-config)"
        )
    return ToleranceSpec(
        translation_mm=translation,
        rotation_deg=rotation,
        relative_ratio=DEFAULT_RELATIVE_RATIO if ratio is None else ratio,
    )

