"""Vectorize script: image → traced rings → DXF and/or G-code.

Runs the full pipeline for one image:
    1. Load job config (and optionally a machine preset)
    2. Load image, apply tone filters and the user threshold
    3. Trace in a worker process (TraceSession), progress streamed to the log
    4. Export DXF (<stem>.dxf) and/or G-code (<stem>.nc), written atomically

Architecture:
    - vectorize_main(image_path, output_dir, ...) → dict
        * Callable function (used by tests and other scripts)
        * Returns: {result, dxf_path, gcode_path}
    - CLI entry point: if __name__ == "__main__"

Exit codes:
    0   success, including an empty trace (logged as a WARNING)
    1   trace worker failure, unreadable image or invalid config

CLI:
    python scripts/vectorize.py logo.png --output out/
    python scripts/vectorize.py logo.png --output out/ --preset router
    python scripts/vectorize.py logo.png --output out/ --noise 0 --simplify 1.0 \\
                                --format gcode --log-level DEBUG

Output structure:
    <output_dir>/
        <stem>.dxf
        <stem>.nc
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

from src.data_pipeline.preprocess import PixelBuffer, apply_filters, load_image
from src.data_pipeline.worker import TraceExecutionError, TraceSession
from src.exporters import dxf, toolpath
from src.utils import fs, validators
from src.utils.logging_config import (
    install_excepthook,
    pop_context,
    push_context,
    setup_logging,
    shutdown,
)

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG = REPO_ROOT / "configs" / "vectorize_v1.yaml"
DEFAULT_PRESETS = REPO_ROOT / "configs" / "machine_presets_v1.yaml"

FORMATS = ("dxf", "gcode", "both")


def vectorize_main(
    image_path: Union[str, Path],
    output_dir: Union[str, Path],
    config_path: Optional[Union[str, Path]] = None,
    preset_id: Optional[str] = None,
    presets_path: Union[str, Path] = DEFAULT_PRESETS,
    noise_threshold: Optional[float] = None,
    simplify_tolerance: Optional[float] = None,
    fmt: str = "both",
    start_method: Optional[str] = None,
) -> Dict[str, Any]:
    """Vectorize one image and write the requested documents.

    Parameters
    ----------
    image_path : str or Path
        Source image (any format Pillow reads)
    output_dir : str or Path
        Created if missing
    config_path : str or Path, optional
        vectorize_job.v1 YAML; built-in defaults when None
    preset_id : str, optional
        Machine preset whose gcode/dxf blocks replace the job's
    presets_path : str or Path
        machine_presets.v1 YAML
    noise_threshold, simplify_tolerance : float, optional
        Overrides for the job's vector block
    fmt : str
        "dxf", "gcode" or "both"
    start_method : str, optional
        multiprocessing start method for the trace worker

    Returns
    -------
    Dict[str, Any]
        result: VectorResult; dxf_path / gcode_path: str or None

    Raises
    ------
    TraceExecutionError
        If the trace worker fails.
    FileNotFoundError, ValueError, KeyError
        Bad config path, invalid config, unreadable image, unknown preset.
    """
    if fmt not in FORMATS:
        raise ValueError(f"Unknown output format '{fmt}' (expected one of {FORMATS})")

    image_path = Path(image_path)
    job = validators.load_vectorize_job(config_path) if config_path else validators.VectorizeJobV1()
    if preset_id:
        preset = validators.load_machine_presets(presets_path).get(preset_id)
        job = job.with_preset(preset)
        logger.info(f"Using machine preset '{preset.id}' ({preset.name})")

    overrides = {}
    if noise_threshold is not None:
        overrides["noise_threshold"] = noise_threshold
    if simplify_tolerance is not None:
        overrides["simplify_tolerance"] = simplify_tolerance
    vector = validators.VectorParams(**{**job.vector.model_dump(), **overrides})

    rgba = apply_filters(load_image(image_path), job.processing)
    buffer = PixelBuffer.from_array(rgba)

    with TraceSession(start_method=start_method) as session:
        session.start(buffer, vector)
        result = session.result(
            progress=lambda pct, msg: logger.info(f"[{pct:5.1f}%] {msg}")
        )

    if result.is_empty:
        logger.warning(f"No contours found in {image_path.name}; documents will be empty")
    else:
        logger.info(f"Traced {len(result.polylines)} polylines, {result.node_count} nodes")

    out_dir = fs.ensure_dir(output_dir)
    dxf_path = None
    gcode_path = None

    if fmt in ("dxf", "both"):
        dxf_path = out_dir / f"{image_path.stem}.dxf"
        fs.atomic_write_text(dxf_path, dxf.emit(result, job.dxf, vector))
        logger.info(f"Wrote {dxf_path}")

    if fmt in ("gcode", "both"):
        gcode_path = out_dir / f"{image_path.stem}.nc"
        fs.atomic_write_text(gcode_path, toolpath.emit(result, vector, job.gcode))
        logger.info(f"Wrote {gcode_path}")

    return {
        'result': result,
        'dxf_path': str(dxf_path) if dxf_path else None,
        'gcode_path': str(gcode_path) if gcode_path else None,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Trace a black/white image and export DXF and G-code"
    )
    parser.add_argument("image", type=str, help="Path to source image (PNG/JPEG/BMP)")
    parser.add_argument(
        "--output",
        type=str,
        required=True,
        help="Output directory for .dxf / .nc files",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG),
        help="Path to vectorize_job.v1 config",
    )
    parser.add_argument(
        "--preset",
        type=str,
        default=None,
        help="Machine preset id (router, laser, mill, ...)",
    )
    parser.add_argument(
        "--presets",
        type=str,
        default=str(DEFAULT_PRESETS),
        help="Path to machine_presets.v1 file",
    )
    parser.add_argument("--noise", type=float, default=None, help="Override noise_threshold (px²)")
    parser.add_argument("--simplify", type=float, default=None, help="Override simplify_tolerance (px)")
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default="both",
        help="Which documents to write",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file")
    parser.add_argument("--json-logs", action="store_true", help="Write the log file as JSON lines")
    return parser


def main(argv=None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        json=args.json_logs,
        context={"app": "vectorize"},
    )
    install_excepthook()
    push_context(image=Path(args.image).name)

    try:
        out = vectorize_main(
            image_path=args.image,
            output_dir=args.output,
            config_path=args.config,
            preset_id=args.preset,
            presets_path=args.presets,
            noise_threshold=args.noise,
            simplify_tolerance=args.simplify,
            fmt=args.format,
        )
    except TraceExecutionError as e:
        logger.error(f"Trace failed: {e}")
        return 1
    except (FileNotFoundError, ValueError, KeyError) as e:
        logger.error(str(e))
        return 1
    finally:
        pop_context(["image"])

    print("\n=== Vectorize Complete ===")
    print(f"Polylines: {len(out['result'].polylines)} ({out['result'].node_count} nodes)")
    if out['dxf_path']:
        print(f"DXF: {out['dxf_path']}")
    if out['gcode_path']:
        print(f"G-code: {out['gcode_path']}")
    return 0


if __name__ == "__main__":
    exit_code = main()
    shutdown()
    sys.exit(exit_code)
