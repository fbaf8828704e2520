"""Document exporters: VectorResult → DXF drawing / G-code program.

Modules:
    - dxf: R12 (AC1009) drawing with one polyline entity per ring
    - toolpath: multi-pass depth-stepped G-code

Both exporters are pure functions returning text; writing files is the
caller's job (see utils.fs.atomic_write_text). Every coordinate goes
through utils.geometry.map_ring, so the two documents always agree on
where a ring lands.
"""

from .common import ExportError
from . import dxf
from . import toolpath

__all__ = [
    'ExportError',
    'dxf',
    'toolpath',
]
