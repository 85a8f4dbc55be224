"""Cross-cutting utilities (lowest dependency layer).

    - Unified logging (logging_config)
    - Atomic I/O and YAML (fs)

No module in utils/ may import from other wood_engraver subpackages.
Library modules log through ``logging.getLogger(__name__)``.

Convenience imports:
    from wood_engraver.utils import fs
    from wood_engraver.utils.logging_config import setup_logging
"""

from . import fs
from . import logging_config

from .logging_config import push_context, setup_logging

__all__ = [
    'fs',
    'logging_config',
    'setup_logging',
    'push_context',
]
