"""
Tests for the SQLAlchemy storage layer
"""

import pytest

from genedash.core.errors import AnalysisNotFoundError
from genedash.schemas import MarkerInterpretation, RiskAssessmentDraft


def make_marker(gene="APOE", variant="rs429358", genotype="CT", impact="High"):
    return MarkerInterpretation(
        gene=gene,
        variant=variant,
        genotype=genotype,
        impact=impact,
        clinical_significance="Risk Factor",
        risk_score=4.0,
        health_category="Neurological Health",
        subcategory="Alzheimer's Disease",
        explanation="APOE e4 carrier.",
        recommendations=["Exercise regularly"],
    )


def analysis_fields(file_name="markers.csv", **overrides):
    fields = dict(
        file_name=file_name,
        file_size=128,
        file_type="text/csv",
        total_markers=2,
        submitted_markers=2,
        failed_markers=0,
        analyzed_variants=100.0,
        risk_factors=1,
        moderate_risk_markers=0,
        status="completed",
        analysis_data={"sources": {"llm": 2}},
    )
    fields.update(overrides)
    return fields


class TestAnalyses:

    def test_create_with_markers(self, storage):
        analysis = storage.create_analysis(
            markers=[make_marker(), make_marker("MTHFR", "rs1801133", "AG", "Moderate")],
            **analysis_fields(),
        )

        assert analysis.id is not None
        assert analysis.created_at is not None
        assert analysis.analysis_data == {"sources": {"llm": 2}}

        markers = storage.markers_for_analysis(analysis.id)
        assert [m.gene for m in markers] == ["APOE", "MTHFR"]
        assert markers[0].analysis_id == analysis.id
        assert markers[0].recommendations == ["Exercise regularly"]

    def test_list_latest_and_get(self, storage):
        first = storage.create_analysis(**analysis_fields("first.csv"))
        second = storage.create_analysis(**analysis_fields("second.csv"))

        assert [a.id for a in storage.list_analyses()] == [first.id, second.id]
        assert storage.latest_analysis().id == second.id
        assert storage.get_analysis(first.id).file_name == "first.csv"
        assert storage.get_analysis(999) is None

    def test_empty_store(self, storage):
        assert storage.list_analyses() == []
        assert storage.latest_analysis() is None

    def test_require_missing_analysis(self, storage):
        with pytest.raises(AnalysisNotFoundError) as exc_info:
            storage.require_analysis(42)
        assert exc_info.value.analysis_id == 42

    def test_add_markers_later(self, storage):
        analysis = storage.create_analysis(**analysis_fields())

        added = storage.add_markers(analysis.id, [make_marker("F5", "rs6025", "AG")])

        assert added[0].id is not None
        assert [m.gene for m in storage.markers_for_analysis(analysis.id)] == ["F5"]


class TestRiskAssessments:

    @pytest.mark.parametrize("level, label, percentage", [
        (4.0, "High", 80.0),
        (3.5, "High", 70.0),
        (2.0, "Moderate", 40.0),
        (1.5, "Low", 30.0),
    ])
    def test_label_and_percentage(self, storage, level, label, percentage):
        analysis = storage.create_analysis(**analysis_fields())

        stored = storage.add_risk_assessments(
            analysis.id, [RiskAssessmentDraft(category="Cancer Risk", risk_level=level)]
        )

        assert stored[0].risk_label == label
        assert stored[0].percentage == percentage
        assert storage.risk_assessments_for_analysis(analysis.id)[0].risk_label == label


class TestChatAndDelete:

    def test_chat_history_in_order(self, storage):
        analysis = storage.create_analysis(**analysis_fields())
        storage.add_chat_message(analysis.id, "What does APOE mean?", "It affects lipid transport.")
        storage.add_chat_message(analysis.id, "Should I worry?", "Discuss with a counselor.")

        history = storage.chat_messages_for_analysis(analysis.id)

        assert [m.message for m in history] == ["What does APOE mean?", "Should I worry?"]
        assert history[0].timestamp is not None

    def test_delete_cascades(self, storage):
        analysis = storage.create_analysis(markers=[make_marker()], **analysis_fields())
        storage.add_risk_assessments(analysis.id, [RiskAssessmentDraft(category="Cancer Risk")])
        storage.add_chat_message(analysis.id, "question", "answer")

        assert storage.delete_analysis(analysis.id) is True

        assert storage.get_analysis(analysis.id) is None
        assert storage.markers_for_analysis(analysis.id) == []
        assert storage.risk_assessments_for_analysis(analysis.id) == []
        assert storage.chat_messages_for_analysis(analysis.id) == []
        assert storage.delete_analysis(analysis.id) is False
