"""
Pydantic models for genetic markers, interpretations and stored records
"""

from typing import List, Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

# Impact labels counted into the analysis statistics
HIGH_IMPACT = "High"
MODERATE_IMPACT = "Moderate"


class MarkerInput(BaseModel):
    """A (gene, variant, genotype) triple extracted from an uploaded file"""
    gene: str = Field(..., min_length=1)
    variant: str = Field(..., min_length=1)
    genotype: str = Field(..., min_length=1)
    chromosome: Optional[str] = None
    position: Optional[int] = None

    def label(self) -> str:
        return f"{self.gene} {self.variant} ({self.genotype})"


class MarkerInterpretation(MarkerInput):
    """Clinical-style interpretation of one marker"""
    impact: str = "Unknown"
    clinical_significance: str = "VUS"
    risk_score: float = 3.0
    health_category: str = "General Health"
    subcategory: str = "Genetic Variant"
    explanation: str = "Analysis pending"
    recommendations: List[str] = Field(default_factory=list)
    source: str = "llm"


class RiskAssessmentDraft(BaseModel):
    """Category-level risk summary before it is stored"""
    category: str
    subcategory: str = "Risk Assessment"
    risk_level: float = Field(2.5, ge=1.0, le=5.0)
    description: str = ""
    recommendation: str = ""


def risk_label(risk_level: float) -> str:
    """Map a 1-5 risk level onto the High/Moderate/Low label"""
    if risk_level >= 3.5:
        return "High"
    if risk_level >= 2.0:
        return "Moderate"
    return "Low"


def risk_percentage(risk_level: float) -> float:
    return round(risk_level / 5.0 * 100, 2)


# Stored records

class GeneticAnalysis(BaseModel):
    """One uploaded file's processing run"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    file_size: int
    file_type: str
    total_markers: int
    submitted_markers: int
    failed_markers: int
    analyzed_variants: float
    risk_factors: int
    moderate_risk_markers: int
    status: str
    analysis_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class GeneticMarker(MarkerInterpretation):
    model_config = ConfigDict(from_attributes=True)

    id: int
    analysis_id: int


class RiskAssessment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    analysis_id: int
    category: str
    subcategory: str
    risk_level: float
    risk_label: str
    percentage: float
    description: str
    recommendation: str


class ChatMessage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    analysis_id: int
    message: str
    response: str
    timestamp: datetime


class ModelStatus(BaseModel):
    name: str
    status: str  # active, standby, error
