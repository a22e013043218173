"""
Batch analysis pipeline
Runs every uploaded marker through the genetic AI service in bounded batches,
reports progress to the broker and persists what succeeded.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from genedash.core.config import Settings, settings as default_settings
from genedash.schemas import (
    HIGH_IMPACT,
    MODERATE_IMPACT,
    AnalysisSummary,
    GeneticAnalysis,
    GeneticMarker,
    MarkerInput,
    MarkerInterpretation,
    RiskAssessment,
)
from genedash.services.genetic_ai import GeneticAIService
from genedash.services.progress import ProgressBroker
from genedash.services.storage import Storage

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"


@dataclass
class FileInfo:
    """Upload metadata stored with the analysis"""
    file_name: str
    file_size: int
    file_type: str = "text/plain"


@dataclass
class MarkerFailure:
    marker: MarkerInput
    error: str


@dataclass
class AnalysisRunResult:
    analysis: GeneticAnalysis
    markers: List[GeneticMarker]
    risk_assessments: List[RiskAssessment]
    failures: List[MarkerFailure] = field(default_factory=list)

    @property
    def status(self) -> str:
        return self.analysis.status

    def summary(self) -> AnalysisSummary:
        return summarize(self.analysis)


def summarize(analysis: GeneticAnalysis) -> AnalysisSummary:
    return AnalysisSummary(
        total_markers=analysis.total_markers,
        analyzed_variants=f"{analysis.analyzed_variants:g}%",
        risk_factors=f"{analysis.risk_factors} High",
    )


def run_status(analyzed: int, failed: int) -> str:
    if analyzed == 0:
        return STATUS_FAILED
    return STATUS_PARTIAL if failed else STATUS_COMPLETED


def analyzed_percentage(analyzed: int, submitted: int) -> float:
    if submitted == 0:
        return 0.0
    return round(analyzed / submitted * 100, 2)


class AnalysisPipeline:
    """Batched, concurrency-bounded marker analysis with partial results

    Markers are cut into fixed batches; inside a batch at most
    ``concurrency`` model calls are in flight and each is limited to
    ``marker_timeout`` seconds. A marker that fails or times out is
    reported and skipped, the rest of the run carries on. There is no
    retry.
    """

    def __init__(self, ai_service: GeneticAIService, storage: Storage, broker: ProgressBroker,
                 batch_size: int = 5, concurrency: int = 3, marker_timeout: float = 180.0):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.ai_service = ai_service
        self.storage = storage
        self.broker = broker
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.marker_timeout = marker_timeout

    @classmethod
    def from_settings(cls, ai_service: GeneticAIService, storage: Storage, broker: ProgressBroker,
                      settings: Settings = default_settings) -> "AnalysisPipeline":
        return cls(
            ai_service,
            storage,
            broker,
            batch_size=settings.ANALYSIS_BATCH_SIZE,
            concurrency=settings.ANALYSIS_CONCURRENCY,
            marker_timeout=settings.MARKER_TIMEOUT_SECONDS,
        )

    def _emit(self, progress_id: Optional[str], event_type: str, message: str, **data: Any):
        self.broker.publish(progress_id, {"type": event_type, "message": message, **data})

    async def run(self, markers: List[MarkerInput], file_info: FileInfo,
                  progress_id: Optional[str] = None) -> AnalysisRunResult:
        """Analyze, summarize and persist one upload"""
        try:
            return await self._run(markers, file_info, progress_id)
        except Exception as e:
            logger.error(f"❌ Analysis of {file_info.file_name} failed: {e}")
            self._emit(progress_id, "analysis_error", f"Analysis failed: {e}")
            raise
        finally:
            self.broker.close(progress_id)

    async def _run(self, markers: List[MarkerInput], file_info: FileInfo,
                   progress_id: Optional[str]) -> AnalysisRunResult:
        started = time.perf_counter()
        total = len(markers)
        logger.info(f"🔄 Starting analysis of {total} markers from {file_info.file_name}")
        self._emit(progress_id, "analysis_started", f"Starting analysis of {total} genetic markers",
                   total_markers=total)

        analyzed, failures = await self.analyze_markers(markers, progress_id)

        self._emit(progress_id, "risk_assessment_started", "Generating risk assessments...")
        drafts = await self.ai_service.generate_risk_assessments(analyzed)

        high = sum(1 for m in analyzed if m.impact == HIGH_IMPACT)
        moderate = sum(1 for m in analyzed if m.impact == MODERATE_IMPACT)
        elapsed = time.perf_counter() - started
        # Blocking session work stays off the event loop
        analysis = await run_in_threadpool(
            self.storage.create_analysis,
            markers=analyzed,
            file_name=file_info.file_name,
            file_size=file_info.file_size,
            file_type=file_info.file_type,
            total_markers=len(analyzed),
            submitted_markers=total,
            failed_markers=len(failures),
            analyzed_variants=analyzed_percentage(len(analyzed), total),
            risk_factors=high,
            moderate_risk_markers=moderate,
            status=run_status(len(analyzed), len(failures)),
            analysis_data=self._run_statistics(analyzed, failures, elapsed),
        )
        stored_markers = await run_in_threadpool(self.storage.markers_for_analysis, analysis.id)
        assessments = await run_in_threadpool(self.storage.add_risk_assessments, analysis.id, drafts)

        result = AnalysisRunResult(analysis, stored_markers, assessments, failures)
        logger.info(f"✅ Analysis {analysis.id} {analysis.status}: {len(analyzed)}/{total} markers "
                    f"in {elapsed:.1f}s")
        self._emit(progress_id, "analysis_complete",
                   f"Analysis complete! Processed {len(analyzed)} of {total} markers.",
                   analysis_id=analysis.id, summary=result.summary().model_dump())
        return result

    async def analyze_markers(self, markers: List[MarkerInput],
                              progress_id: Optional[str] = None
                              ) -> Tuple[List[MarkerInterpretation], List[MarkerFailure]]:
        """Run every marker through the model; returns (analyzed, failures) in input order"""
        total = len(markers)
        semaphore = asyncio.Semaphore(self.concurrency)
        batches = [markers[i:i + self.batch_size] for i in range(0, total, self.batch_size)]
        analyzed: List[MarkerInterpretation] = []
        failures: List[MarkerFailure] = []

        for batch_number, batch in enumerate(batches, start=1):
            offset = (batch_number - 1) * self.batch_size
            outcomes = await asyncio.gather(*[
                self._analyze_one(semaphore, marker, offset + index + 1, total, progress_id)
                for index, marker in enumerate(batch)
            ])
            for marker, outcome in zip(batch, outcomes):
                if isinstance(outcome, MarkerInterpretation):
                    analyzed.append(outcome)
                else:
                    failures.append(MarkerFailure(marker, outcome))

            self._emit(progress_id, "batch_complete",
                       f"Completed batch {batch_number} of {len(batches)}",
                       batch=batch_number, batches=len(batches))

        if failures:
            logger.warning(f"⚠️ {len(failures)} of {total} markers could not be analyzed")
        return analyzed, failures

    async def _analyze_one(self, semaphore: asyncio.Semaphore, marker: MarkerInput,
                           current: int, total: int, progress_id: Optional[str]):
        """Returns the interpretation, or the error text when the marker failed"""
        async with semaphore:
            self._emit(progress_id, "marker_progress",
                       f"Analyzing {marker.gene} {marker.variant} ({current}/{total})",
                       current=current, total=total, gene=marker.gene, variant=marker.variant)
            try:
                interpretation = await asyncio.wait_for(
                    self.ai_service.analyze_marker(marker), timeout=self.marker_timeout
                )
            except asyncio.TimeoutError:
                error = f"Timed out after {self.marker_timeout:g}s"
            except Exception as e:
                error = str(e) or e.__class__.__name__
            else:
                self._emit(progress_id, "marker_complete",
                           f"Completed {marker.gene} analysis ({current}/{total})",
                           current=current, total=total, gene=marker.gene,
                           impact=interpretation.impact)
                return interpretation

        logger.error(f"❌ Error analyzing marker {marker.label()}: {error}")
        self._emit(progress_id, "marker_failed", f"Failed to analyze {marker.gene}: {error}",
                   gene=marker.gene, error=error)
        return error

    @staticmethod
    def _run_statistics(analyzed: List[MarkerInterpretation], failures: List[MarkerFailure],
                        elapsed: float) -> Dict[str, Any]:
        sources: Dict[str, int] = {}
        for marker in analyzed:
            sources[marker.source] = sources.get(marker.source, 0) + 1
        return {
            "processing_seconds": round(elapsed, 2),
            "sources": sources,
            "failed": [{"marker": f.marker.label(), "error": f.error} for f in failures],
        }
