"""rawkit - decode once, convert many."""

__version__ = "0.1.0"

from rawkit.core.adapter import FormatAdapter
from rawkit.core.batch import BatchJob, BatchScheduler
from rawkit.core.fanout import convert_many, convert_multi_size
from rawkit.core.optimizer import OptimizationResult, SettingsOptimizer
from rawkit.core.options import ConversionRequest, SizeSpec
from rawkit.core.results import BatchResult, ConversionResult, MultiSizeResult
from rawkit.core.session import Session, SessionState
from rawkit.utils.logging import get_logger, setup_logging

__all__ = [
    "__version__",
    "BatchJob",
    "BatchResult",
    "BatchScheduler",
    "ConversionRequest",
    "ConversionResult",
    "FormatAdapter",
    "MultiSizeResult",
    "OptimizationResult",
    "Session",
    "SessionState",
    "SettingsOptimizer",
    "SizeSpec",
    "convert_many",
    "convert_multi_size",
    "get_logger",
    "setup_logging",
]
