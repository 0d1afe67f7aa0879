"""Intraprocedural array-access safety analysis for Java methods."""

from loguru import logger

from arraysafety.analysis import AnalysisResult, ArraySafetyAnalyzer
from arraysafety.bounds_checker import Verdict
from arraysafety.config import AnalysisConfig
from arraysafety.source_parser import load_method, lower_method

__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "ArraySafetyAnalyzer",
    "Verdict",
    "load_method",
    "lower_method",
]

logger.disable("arraysafety")
