"""Services package initialization"""

from .genetic_ai import GeneticAIService
from .llm_client import LLMClient, ModelConfig
from .pipeline import AnalysisPipeline, AnalysisRunResult, FileInfo
from .progress import ProgressBroker
from .storage import Storage

__all__ = [
    "GeneticAIService",
    "LLMClient",
    "ModelConfig",
    "AnalysisPipeline",
    "AnalysisRunResult",
    "FileInfo",
    "ProgressBroker",
    "Storage",
]
