"""
Pydantic schemas for API requests and responses
"""

from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from .genetics import GeneticAnalysis, GeneticMarker, RiskAssessment, ChatMessage

# Base response schema
class BaseResponse(BaseModel):
    """Base response schema"""
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)

# Upload / analysis schemas
class AnalysisSummary(BaseModel):
    """Headline numbers for a finished run"""
    total_markers: int
    analyzed_variants: str
    risk_factors: str
    last_analysis: str = "Just now"

class UploadResponse(BaseModel):
    """Genetic file upload response schema"""
    analysis_id: int
    progress_id: str
    status: str
    summary: AnalysisSummary
    message: str

class AnalysisOverview(BaseModel):
    """Dashboard overview of the latest run"""
    total_markers: int
    analyzed_variants: str
    risk_factors: str
    last_analysis: str

class HistorySummary(BaseModel):
    high_risk_count: int
    moderate_risk_count: int
    low_risk_count: int
    total_risk_assessments: int

class AnalysisHistoryItem(BaseModel):
    """One row of the analysis history"""
    id: int
    file_name: str
    created_at: datetime
    total_markers: int
    analyzed_variants: str
    risk_factors: int
    status: str
    summary: HistorySummary

class AnalysisDetails(BaseModel):
    """Full analysis with its markers and risk assessments"""
    analysis: GeneticAnalysis
    markers: List[GeneticMarker]
    risk_assessments: List[RiskAssessment]

class AnalysisExport(AnalysisDetails):
    chat_history: List[ChatMessage]
    exported_at: datetime = Field(default_factory=datetime.now)

# Chat schemas
class ChatRequest(BaseModel):
    """Chat request schema"""
    message: Optional[str] = Field(None, description="Question about the analysis")
    analysis_id: Optional[int] = Field(None, description="Analysis to discuss")

class ChatResponse(BaseModel):
    """Chat response schema"""
    id: int
    message: str
    response: str
    timestamp: datetime

# Health Schemas
class HealthResponse(BaseResponse):
    """Health check response schema"""
    status: str
    version: str
    services: Dict[str, Any]
    uptime: float
