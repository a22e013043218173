"""
Genetic AI Service - prompt construction and interpretation of genetic markers
"""

import logging
from collections import OrderedDict
from typing import List, Optional

from genedash.core.config import Settings, settings as default_settings
from genedash.core.errors import LLMError
from genedash.schemas import MarkerInput, MarkerInterpretation, RiskAssessmentDraft, ModelStatus
from genedash.services.llm_client import LLMClient
from genedash.services.reference import lookup_reference, REFERENCE_VARIANTS
from genedash.services.response_parser import parse_marker_interpretation, parse_risk_assessments, clamp_risk

logger = logging.getLogger(__name__)

MARKER_SYSTEM_PROMPT = (
    "You are a board-certified clinical geneticist with expertise in genetic variant interpretation. "
    "Provide accurate, evidence-based genetic counseling based on current scientific literature and clinical guidelines."
)

RISK_SYSTEM_PROMPT = (
    "You are a clinical geneticist providing comprehensive genetic risk assessments. "
    "Base your analysis on current scientific evidence and clinical guidelines."
)

CHAT_SYSTEM_PROMPT = (
    "You are a board-certified clinical geneticist providing genetic counseling. Give accurate, evidence-based "
    "answers while being sensitive to patient concerns and maintaining appropriate clinical boundaries."
)

# Status strings for placeholder interpretations
SYSTEM_STATUS_CATEGORY = "System Status"


def build_marker_prompt(marker: MarkerInput) -> str:
    location = ""
    if marker.chromosome:
        location += f"Chromosome: {marker.chromosome}\n"
    if marker.position:
        location += f"Position: {marker.position}\n"

    return f"""As a clinical geneticist, analyze this genetic marker and provide detailed assessment:

Gene: {marker.gene}
Variant: {marker.variant}
Genotype: {marker.genotype}
{location}
Please provide a comprehensive analysis in JSON format with these exact keys:
- gene: string
- variant: string
- genotype: string
- impact: string (High/Moderate/Low/Benign)
- clinicalSignificance: string (Pathogenic/Likely Pathogenic/VUS/Likely Benign/Benign)
- riskScore: number (1-5 scale where 5 is highest risk)
- healthCategory: string (e.g., "Cardiovascular Health", "Cancer Risk", "Metabolic Health")
- subcategory: string (specific condition or trait)
- explanation: string (detailed clinical interpretation)
- recommendations: array of strings (actionable health recommendations)

Respond with the JSON object only. Focus on clinical accuracy and evidence-based interpretations."""


def build_risk_prompt(markers: List[MarkerInterpretation]) -> str:
    lines = "\n".join(
        f"{m.gene} ({m.variant}): {m.genotype} - {m.impact} impact, "
        f"Clinical: {m.clinical_significance}, Risk: {m.risk_score:g}/5"
        for m in markers
    )
    return f"""As a clinical geneticist, analyze these genetic markers and create comprehensive risk assessments:

{lines}

Please provide risk assessments grouped by health category as a JSON array. Each assessment should have:
- category: string (health category)
- subcategory: string (specific condition)
- riskLevel: number (1-5 scale)
- description: string (clear explanation of the risk)
- recommendation: string (specific actionable advice)

Focus on evidence-based interpretations and practical recommendations."""


def build_chat_prompt(question: str, markers: List[MarkerInput], previous_context: Optional[str] = None) -> str:
    markers_context = ", ".join(m.label() for m in markers) or "No markers available"
    context = f"Previous context: {previous_context}\n" if previous_context else ""
    return f"""Question: {question}

Available genetic data: {markers_context}

{context}
As a clinical geneticist, provide a detailed, accurate answer based on the genetic data provided. Focus on:
- Evidence-based interpretations
- Clinical significance
- Practical health implications
- Actionable recommendations

Keep the response informative but accessible to patients."""


def unavailable_interpretation(marker: MarkerInput, base_url: str, model_name: str) -> MarkerInterpretation:
    """Placeholder shown when no model is reachable"""
    return MarkerInterpretation(
        **marker.model_dump(),
        impact="Pending Local Analysis",
        clinical_significance="Local Model Required",
        risk_score=0,
        health_category=SYSTEM_STATUS_CATEGORY,
        subcategory="Model Configuration",
        explanation=(
            f"Local genetic analysis model not connected. To analyze {marker.gene} {marker.variant} "
            f"({marker.genotype}), please start your local LLM server."
        ),
        recommendations=[
            "Install Ollama on your local machine",
            f"Pull a biomedical model: ollama pull {model_name}",
            "Start the local server: ollama serve",
            f"Verify the server answers at {base_url}",
            "Upload your genetic data again for analysis",
        ],
        source="unavailable",
    )


class GeneticAIService:
    """Marker interpretation, risk summaries and question answering on top of an LLM"""

    def __init__(self, llm_client: LLMClient, settings: Settings = default_settings):
        self.llm = llm_client
        self.settings = settings

    async def is_model_available(self) -> bool:
        return await self.llm.check_health()

    async def analyze_marker(self, marker: MarkerInput) -> MarkerInterpretation:
        """Interpret one marker

        Raises LLMError or ResponseParseError when the model is reachable but
        the call or its output fails; the caller decides whether to skip.
        """
        if not await self.is_model_available():
            if self.settings.REFERENCE_FALLBACK:
                reference = lookup_reference(marker)
                if reference is not None:
                    logger.debug(f"Reference interpretation used for {marker.label()}")
                    return reference
            return unavailable_interpretation(
                marker, self.settings.OLLAMA_BASE_URL, self.llm.model_name
            )

        response = await self.llm.generate(build_marker_prompt(marker), MARKER_SYSTEM_PROMPT)
        return parse_marker_interpretation(response, marker)

    async def generate_risk_assessments(self, markers: List[MarkerInterpretation]) -> List[RiskAssessmentDraft]:
        """Category-level summaries for analyzed markers; empty on model failure"""
        if not markers:
            return []

        # Interpretations that came from the model or the table carry real categories
        interpreted = [m for m in markers if m.health_category != SYSTEM_STATUS_CATEGORY]

        if not await self.is_model_available():
            return self.assessments_from_markers(interpreted)

        try:
            response = await self.llm.generate(build_risk_prompt(markers), RISK_SYSTEM_PROMPT)
        except LLMError as e:
            logger.error(f"❌ Error generating risk assessments: {e}")
            return []
        return parse_risk_assessments(response)

    @staticmethod
    def assessments_from_markers(markers: List[MarkerInterpretation]) -> List[RiskAssessmentDraft]:
        """Group marker interpretations by health category without a model"""
        groups = OrderedDict()
        for marker in markers:
            groups.setdefault(marker.health_category, []).append(marker)

        drafts = []
        for category, members in groups.items():
            worst = max(members, key=lambda m: m.risk_score)
            genes = ", ".join(sorted({m.gene for m in members}))
            drafts.append(RiskAssessmentDraft(
                category=category,
                subcategory=worst.subcategory,
                risk_level=clamp_risk(worst.risk_score),
                description=f"Based on {len(members)} marker(s) in {genes}. {worst.explanation}",
                recommendation=worst.recommendations[0] if worst.recommendations
                else "Consult with healthcare provider for detailed guidance.",
            ))
        return drafts

    async def answer_question(self, question: str, markers: List[MarkerInput],
                              previous_context: Optional[str] = None) -> str:
        """Answer a free-text question about the analysis; raises LLMError"""
        prompt = build_chat_prompt(question, markers, previous_context)
        response = await self.llm.generate(prompt, CHAT_SYSTEM_PROMPT)
        return response.strip()

    async def model_status(self) -> List[ModelStatus]:
        """Status of the configured model, other installed models and the reference table"""
        healthy = await self.llm.check_health(use_cache=False)
        statuses = [ModelStatus(name=self.llm.model_name, status="active" if healthy else "error")]

        if healthy:
            for name in await self.llm.list_models():
                if name != self.llm.model_name:
                    statuses.append(ModelStatus(name=name, status="standby"))

        reference_status = "active" if self.settings.REFERENCE_FALLBACK and not healthy else "standby"
        statuses.append(ModelStatus(name=f"Reference Table ({len(REFERENCE_VARIANTS)} variants)", status=reference_status))
        return statuses
