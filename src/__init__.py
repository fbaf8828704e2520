"""Raster-to-toolpath vectorizer: binary image → closed polylines → DXF / G-code.

This package converts a thresholded raster image into closed vector rings,
projects them into a physical cutting/drawing frame and serializes the
result as a DXF drawing or a multi-pass depth G-code program.

Architecture layers (strict one-way dependency):
    scripts/ → src/exporters/ → src/data_pipeline/ → src/utils/

Key invariants:
    - Rings are traced in image pixel units (top-left origin, +Y down)
    - One shared point mapper (utils.geometry) feeds both exporters
    - VectorResult is immutable once produced; exporters never mutate it
    - YAML-only configs, validated by pydantic models
"""

__version__ = "1.0.0"
