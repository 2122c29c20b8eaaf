"""Conversion orchestration for rawkit."""

from rawkit.core.adapter import FormatAdapter
from rawkit.core.batch import BatchJob, BatchScheduler
from rawkit.core.capabilities import Capabilities, get_capabilities
from rawkit.core.fanout import convert_many, convert_multi_size
from rawkit.core.optimizer import OptimizationResult, SettingsOptimizer
from rawkit.core.options import ConversionRequest, SizeSpec, build_request
from rawkit.core.results import (
    BatchFailure,
    BatchResult,
    BatchSuccess,
    ConversionResult,
    MultiSizeResult,
)
from rawkit.core.session import Session, SessionState

__all__ = [
    "BatchFailure",
    "BatchJob",
    "BatchResult",
    "BatchScheduler",
    "BatchSuccess",
    "Capabilities",
    "ConversionRequest",
    "ConversionResult",
    "FormatAdapter",
    "MultiSizeResult",
    "OptimizationResult",
    "Session",
    "SessionState",
    "SettingsOptimizer",
    "SizeSpec",
    "build_request",
    "convert_many",
    "convert_multi_size",
    "get_capabilities",
]
