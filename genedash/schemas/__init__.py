"""Schemas package initialization"""

from .genetics import *
from .requests import *

__all__ = [
    "MarkerInput",
    "MarkerInterpretation",
    "RiskAssessmentDraft",
    "GeneticAnalysis",
    "GeneticMarker",
    "RiskAssessment",
    "ChatMessage",
    "ModelStatus",
    "HIGH_IMPACT",
    "MODERATE_IMPACT",
    "risk_label",
    "risk_percentage",
    "BaseResponse",
    "AnalysisSummary",
    "UploadResponse",
    "AnalysisOverview",
    "HistorySummary",
    "AnalysisHistoryItem",
    "AnalysisDetails",
    "AnalysisExport",
    "ChatRequest",
    "ChatResponse",
    "HealthResponse",
]
