"""
Tests for the batch analysis pipeline
"""

import asyncio
import threading

import pytest

from genedash.schemas import MarkerInput
from genedash.services.pipeline import AnalysisPipeline, FileInfo, analyzed_percentage, run_status

MARKERS = [
    MarkerInput(gene="APOE", variant="rs429358", genotype="CT"),
    MarkerInput(gene="MTHFR", variant="rs1801133", genotype="AG"),
    MarkerInput(gene="F5", variant="rs6025", genotype="GG"),
    MarkerInput(gene="HFE", variant="rs1800562", genotype="GG"),
    MarkerInput(gene="CYP2C19", variant="rs4244285", genotype="GG"),
]

FILE_INFO = FileInfo(file_name="markers.csv", file_size=256, file_type="text/csv")


def make_pipeline(ai_service, storage, broker, **kwargs):
    options = dict(batch_size=2, concurrency=2, marker_timeout=5.0)
    options.update(kwargs)
    return AnalysisPipeline(ai_service, storage, broker, **options)


def run_with_events(pipeline, markers, progress_id="run-1"):
    """Run the pipeline with a listener attached; returns (result, events)"""
    async def scenario():
        queue = pipeline.broker.open(progress_id)
        try:
            result = await pipeline.run(markers, FILE_INFO, progress_id)
        finally:
            events = []
            while not queue.empty():
                event = queue.get_nowait()
                if event is not None:
                    events.append(event)
        return result, events

    return asyncio.run(scenario())


class TestStatistics:

    @pytest.mark.parametrize("analyzed, failed, expected", [
        (5, 0, "completed"),
        (3, 2, "partial"),
        (0, 5, "failed"),
    ])
    def test_run_status(self, analyzed, failed, expected):
        assert run_status(analyzed, failed) == expected

    def test_analyzed_percentage(self):
        assert analyzed_percentage(2, 3) == 66.67
        assert analyzed_percentage(0, 0) == 0.0


class TestAnalysisPipeline:

    def test_all_markers_analyzed(self, ai_service, storage, broker):
        pipeline = make_pipeline(ai_service, storage, broker)

        result, events = run_with_events(pipeline, MARKERS)

        analysis = result.analysis
        assert analysis.status == "completed"
        assert analysis.total_markers == 5
        assert analysis.submitted_markers == 5
        assert analysis.failed_markers == 0
        assert analysis.analyzed_variants == 100.0
        assert analysis.risk_factors == 1
        assert analysis.moderate_risk_markers == 1
        assert analysis.analysis_data["sources"] == {"llm": 5}
        assert [m.gene for m in result.markers] == [m.gene for m in MARKERS]
        assert [a.category for a in result.risk_assessments] == ["Neurological Health", "Cardiovascular Health"]
        assert result.risk_assessments[0].risk_label == "High"

        summary = result.summary()
        assert summary.analyzed_variants == "100%"
        assert summary.risk_factors == "1 High"
        assert summary.last_analysis == "Just now"

        types = [e["type"] for e in events]
        assert types[0] == "analysis_started"
        assert types[-1] == "analysis_complete"
        assert types.count("marker_progress") == 5
        assert types.count("marker_complete") == 5
        assert types.count("batch_complete") == 3
        assert types.index("risk_assessment_started") > types.index("marker_complete")
        assert all("message" in e for e in events)
        assert events[-1]["analysis_id"] == analysis.id
        assert events[-1]["summary"]["total_markers"] == 5
        assert [e["batch"] for e in events if e["type"] == "batch_complete"] == [1, 2, 3]
        assert broker.connection_count() == 0

    def test_failed_markers_are_skipped(self, ai_service, storage, broker, fake_llm):
        fake_llm.fail_genes.add("MTHFR")
        fake_llm.garbled_genes.add("HFE")
        pipeline = make_pipeline(ai_service, storage, broker)

        result, events = run_with_events(pipeline, MARKERS)

        assert result.status == "partial"
        assert result.analysis.failed_markers == 2
        assert result.analysis.total_markers == 3
        assert result.analysis.analyzed_variants == 60.0
        assert [m.gene for m in result.markers] == ["APOE", "F5", "CYP2C19"]
        assert sorted(f.marker.gene for f in result.failures) == ["HFE", "MTHFR"]
        assert len(result.analysis.analysis_data["failed"]) == 2

        failed_events = [e for e in events if e["type"] == "marker_failed"]
        assert sorted(e["gene"] for e in failed_events) == ["HFE", "MTHFR"]
        assert all(e["error"] for e in failed_events)
        assert events[-1]["type"] == "analysis_complete"

    def test_every_marker_failing(self, ai_service, storage, broker, fake_llm):
        fake_llm.fail_genes.update(m.gene for m in MARKERS)
        pipeline = make_pipeline(ai_service, storage, broker)

        result, _ = run_with_events(pipeline, MARKERS)

        assert result.status == "failed"
        assert result.analysis.total_markers == 0
        assert result.analysis.analyzed_variants == 0.0
        assert result.markers == []
        assert result.risk_assessments == []
        assert storage.get_analysis(result.analysis.id).status == "failed"

    def test_slow_marker_times_out(self, ai_service, storage, broker, fake_llm):
        fake_llm.slow_genes.add("F5")
        pipeline = make_pipeline(ai_service, storage, broker, marker_timeout=0.05)

        result, events = run_with_events(pipeline, MARKERS)

        assert result.status == "partial"
        assert [f.marker.gene for f in result.failures] == ["F5"]
        assert "Timed out" in result.failures[0].error
        assert any(e["type"] == "marker_failed" and e["gene"] == "F5" for e in events)

    def test_concurrency_is_bounded(self, ai_service, storage, broker, fake_llm):
        fake_llm.delay = 0.01
        markers = [MarkerInput(gene=f"GENE{i}", variant=f"rs{i}", genotype="AG") for i in range(8)]
        pipeline = make_pipeline(ai_service, storage, broker, batch_size=8, concurrency=3)

        result, _ = run_with_events(pipeline, markers)

        assert result.analysis.total_markers == 8
        assert fake_llm.max_in_flight == 3
        assert [m.gene for m in result.markers] == [m.gene for m in markers]

    def test_without_progress_listener(self, ai_service, storage, broker):
        pipeline = make_pipeline(ai_service, storage, broker)

        result = asyncio.run(pipeline.run(MARKERS[:2], FILE_INFO))

        assert result.status == "completed"
        assert storage.latest_analysis().id == result.analysis.id

    def test_storage_calls_run_off_the_event_loop(self, ai_service, storage, broker):
        threads = []
        create_analysis = storage.create_analysis

        def recording_create_analysis(**fields):
            threads.append(threading.current_thread())
            return create_analysis(**fields)

        storage.create_analysis = recording_create_analysis
        pipeline = make_pipeline(ai_service, storage, broker)

        result = asyncio.run(pipeline.run(MARKERS[:1], FILE_INFO))

        assert result.status == "completed"
        assert threads and threads[0] is not threading.main_thread()

    def test_unexpected_error_is_reported_and_raised(self, ai_service, broker):
        class BrokenStorage:
            def create_analysis(self, **fields):
                raise RuntimeError("database is locked")

        pipeline = make_pipeline(ai_service, BrokenStorage(), broker)

        async def scenario():
            queue = broker.open("run-err")
            with pytest.raises(RuntimeError, match="database is locked"):
                await pipeline.run(MARKERS[:1], FILE_INFO, "run-err")
            events = []
            while not queue.empty():
                events.append(queue.get_nowait())
            return events

        events = asyncio.run(scenario())

        assert events[-2]["type"] == "analysis_error"
        assert "database is locked" in events[-2]["message"]
        assert events[-1] is None
        assert broker.connection_count() == 0

    def test_invalid_options(self, ai_service, storage, broker):
        with pytest.raises(ValueError):
            make_pipeline(ai_service, storage, broker, batch_size=0)
        with pytest.raises(ValueError):
            make_pipeline(ai_service, storage, broker, concurrency=0)
