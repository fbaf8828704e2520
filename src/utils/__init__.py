"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Image → output coordinate mapping (geometry)
    - Atomic I/O (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (data_pipeline, exporters).

Convenience imports:
    from src.utils import fs, geometry, validators
    from src.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import geometry
from . import logging_config
from . import validators

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'geometry',
    'logging_config',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
