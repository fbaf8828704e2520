"""Raster → vector tracing pipeline.

Modules:
    - preprocess: image loading, tone filters, PixelBuffer
    - binary_field: PixelBuffer → 0/1 density field (fixed level 128)
    - contour_tracer: marching squares at 0.5, rings grouped into polygons
    - simplify: area noise filter and Ramer-Douglas-Peucker
    - trace: orchestration, VectorResult, progress events
    - worker: TraceSession, the same run in a terminable worker process

Workflow:
    1. load_image() → apply_filters() → PixelBuffer.from_array()
    2. classify() → density field
    3. trace() → polygons of closed rings (pixel units, +Y down)
    4. keep() on the raw ring, then simplify(); rings of <= 2 points dropped
    5. VectorResult handed to src.exporters

Submodules are imported explicitly; nothing is loaded here.
"""
