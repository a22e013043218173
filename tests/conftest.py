"""
Shared fixtures: an in-memory database and a scripted language model
"""

import asyncio
import json
import re

import pytest
from fastapi.testclient import TestClient

from genedash.core.config import Settings
from genedash.core.errors import LLMError
from genedash.main import create_app
from genedash.services import GeneticAIService, ProgressBroker, Storage

# Impact the fake model reports per gene; anything else is Low
GENE_IMPACTS = {"APOE": "High", "BRCA1": "High", "MTHFR": "Moderate"}

RISK_REPLY = json.dumps([
    {
        "category": "Neurological Health",
        "subcategory": "Alzheimer's Disease",
        "riskLevel": 4,
        "description": "APOE e4 carrier status raises late-onset Alzheimer's risk.",
        "recommendation": "Discuss results with a genetic counselor.",
    },
    {
        "category": "Cardiovascular Health",
        "subcategory": "Homocysteine Metabolism",
        "riskLevel": 2,
        "description": "Reduced MTHFR activity.",
        "recommendation": "Check homocysteine levels.",
    },
])

_GENE_LINE = re.compile(r"^Gene: (\S+)", re.MULTILINE)


def marker_reply(gene: str) -> str:
    impact = GENE_IMPACTS.get(gene, "Low")
    risk = {"High": 4, "Moderate": 3}.get(impact, 1)
    return (
        f"Here is the assessment for {gene}:\n```json\n"
        + json.dumps({
            "gene": gene,
            "impact": impact,
            "clinicalSignificance": "Likely Pathogenic" if impact == "High" else "Benign",
            "riskScore": risk,
            "healthCategory": "Neurological Health" if gene == "APOE" else "General Health",
            "subcategory": f"{gene} variant",
            "explanation": f"Interpretation of {gene}.",
            "recommendations": ["Consult with healthcare provider"],
        })
        + "\n```"
    )


class FakeLLMClient:
    """Stands in for LLMClient, answering from the prompt kind"""

    model_name = "fake-genetics:8b"
    provider = "ollama"

    def __init__(self):
        self.healthy = True
        self.fail_genes = set()
        self.garbled_genes = set()
        self.slow_genes = set()
        self.delay = 0.0
        self.risk_reply = RISK_REPLY
        self.risk_error = False
        self.chat_reply = "APOE e4 carriers should focus on cardiovascular health."
        self.chat_error = False
        self.prompts = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, prompt, system_prompt=None):
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)

            if "create comprehensive risk assessments" in prompt:
                if self.risk_error:
                    raise LLMError("Local LLM API error: 500 Internal Server Error")
                return self.risk_reply

            match = _GENE_LINE.search(prompt)
            if match:
                gene = match.group(1)
                if gene in self.fail_genes:
                    raise LLMError(f"Local LLM API error: 500 while analyzing {gene}")
                if gene in self.slow_genes:
                    await asyncio.sleep(10)
                if gene in self.garbled_genes:
                    return "I am unable to provide an assessment for this variant."
                return marker_reply(gene)

            if self.chat_error:
                raise LLMError("Local model timed out after 120.0s")
            return self.chat_reply
        finally:
            self.in_flight -= 1

    async def check_health(self, use_cache=True):
        return self.healthy

    async def list_models(self):
        return [self.model_name, "mistral:7b"] if self.healthy else []


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        LOG_FILE="",
        ANALYSIS_BATCH_SIZE=2,
        ANALYSIS_CONCURRENCY=2,
        MARKER_TIMEOUT_SECONDS=5.0,
        PROGRESS_KEEPALIVE_SECONDS=0.05,
    )


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def storage():
    store = Storage("sqlite:///:memory:")
    store.create_tables()
    yield store
    store.dispose()


@pytest.fixture
def broker():
    return ProgressBroker(queue_size=100, keepalive_seconds=0.05)


@pytest.fixture
def ai_service(fake_llm, settings):
    return GeneticAIService(fake_llm, settings)


@pytest.fixture
def client(settings, fake_llm):
    app = create_app(settings, llm_client=fake_llm)
    with TestClient(app) as test_client:
        yield test_client
