"""pipeline.stages

Builtin gate stages.

Importing this package registers builtin stages in the global registry.
"""

# Import side-effect: stage registration decorators.
from . import infrastructure  # noqa: F401
from . import api  # noqa: F401
from . import data_consistency  # noqa: F401
from . import performance  # noqa: F401

__all__ = [
    "infrastructure",
    "api",
    "data_consistency",
    "performance",
]
