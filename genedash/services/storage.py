"""
Storage layer - SQLAlchemy persistence for analyses, markers, risk assessments and chat messages
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from genedash.core.errors import AnalysisNotFoundError
from genedash.schemas import (
    ChatMessage,
    GeneticAnalysis,
    GeneticMarker,
    MarkerInterpretation,
    RiskAssessment,
    RiskAssessmentDraft,
    risk_label,
    risk_percentage,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class AnalysisRecord(Base):
    __tablename__ = "genetic_analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    file_name: Mapped[str] = mapped_column(String(255))
    file_size: Mapped[int] = mapped_column(Integer)
    file_type: Mapped[str] = mapped_column(String(100))
    total_markers: Mapped[int] = mapped_column(Integer)
    submitted_markers: Mapped[int] = mapped_column(Integer)
    failed_markers: Mapped[int] = mapped_column(Integer, default=0)
    analyzed_variants: Mapped[float] = mapped_column(Float)
    risk_factors: Mapped[int] = mapped_column(Integer)
    moderate_risk_markers: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20))
    analysis_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    markers: Mapped[List["MarkerRecord"]] = relationship(
        back_populates="analysis", cascade="all, delete-orphan", order_by="MarkerRecord.id"
    )
    risk_assessments: Mapped[List["RiskAssessmentRecord"]] = relationship(
        cascade="all, delete-orphan", order_by="RiskAssessmentRecord.id"
    )
    chat_messages: Mapped[List["ChatMessageRecord"]] = relationship(
        cascade="all, delete-orphan", order_by="ChatMessageRecord.id"
    )


class MarkerRecord(Base):
    __tablename__ = "genetic_markers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    analysis_id: Mapped[int] = mapped_column(ForeignKey("genetic_analyses.id", ondelete="CASCADE"), index=True)
    gene: Mapped[str] = mapped_column(String(100))
    variant: Mapped[str] = mapped_column(String(255))
    genotype: Mapped[str] = mapped_column(String(100))
    chromosome: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    impact: Mapped[str] = mapped_column(String(100))
    clinical_significance: Mapped[str] = mapped_column(String(100))
    risk_score: Mapped[float] = mapped_column(Float)
    health_category: Mapped[str] = mapped_column(String(255))
    subcategory: Mapped[str] = mapped_column(String(255))
    explanation: Mapped[str] = mapped_column(Text)
    recommendations: Mapped[List[str]] = mapped_column(JSON, default=list)
    source: Mapped[str] = mapped_column(String(20))

    analysis: Mapped[AnalysisRecord] = relationship(back_populates="markers")


class RiskAssessmentRecord(Base):
    __tablename__ = "risk_assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    analysis_id: Mapped[int] = mapped_column(ForeignKey("genetic_analyses.id", ondelete="CASCADE"), index=True)
    category: Mapped[str] = mapped_column(String(255))
    subcategory: Mapped[str] = mapped_column(String(255))
    risk_level: Mapped[float] = mapped_column(Float)
    risk_label: Mapped[str] = mapped_column(String(20))
    percentage: Mapped[float] = mapped_column(Float)
    description: Mapped[str] = mapped_column(Text)
    recommendation: Mapped[str] = mapped_column(Text)


class ChatMessageRecord(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    analysis_id: Mapped[int] = mapped_column(ForeignKey("genetic_analyses.id", ondelete="CASCADE"), index=True)
    message: Mapped[str] = mapped_column(Text)
    response: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


def _create_engine(database_url: str):
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    else:
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)
    return create_engine(database_url, **kwargs)


class Storage:
    """Relational store for analysis runs

    Every method opens its own session and returns pydantic read models, so
    nothing handed to callers is bound to a session.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = _create_engine(database_url)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self):
        Base.metadata.create_all(self.engine)
        logger.info(f"✅ Storage ready ({self.engine.url.get_backend_name()})")

    def dispose(self):
        self.engine.dispose()

    # Genetic analysis methods

    def create_analysis(self, markers: Iterable[MarkerInterpretation] = (), **fields) -> GeneticAnalysis:
        """Insert an analysis, optionally with its markers, in one transaction"""
        with self.SessionLocal.begin() as session:
            record = AnalysisRecord(**fields)
            record.markers = [self._marker_record(marker) for marker in markers]
            session.add(record)
            session.flush()
            return GeneticAnalysis.model_validate(record)

    def get_analysis(self, analysis_id: int) -> Optional[GeneticAnalysis]:
        with self.SessionLocal() as session:
            record = session.get(AnalysisRecord, analysis_id)
            return GeneticAnalysis.model_validate(record) if record else None

    def require_analysis(self, analysis_id: int) -> GeneticAnalysis:
        analysis = self.get_analysis(analysis_id)
        if analysis is None:
            raise AnalysisNotFoundError(analysis_id)
        return analysis

    def list_analyses(self) -> List[GeneticAnalysis]:
        """All analyses, oldest first"""
        with self.SessionLocal() as session:
            records = session.scalars(select(AnalysisRecord).order_by(AnalysisRecord.id)).all()
            return [GeneticAnalysis.model_validate(record) for record in records]

    def latest_analysis(self) -> Optional[GeneticAnalysis]:
        with self.SessionLocal() as session:
            record = session.scalars(
                select(AnalysisRecord).order_by(AnalysisRecord.id.desc()).limit(1)
            ).first()
            return GeneticAnalysis.model_validate(record) if record else None

    def delete_analysis(self, analysis_id: int) -> bool:
        with self.SessionLocal.begin() as session:
            record = session.get(AnalysisRecord, analysis_id)
            if record is None:
                return False
            session.delete(record)
        logger.info(f"🗑️ Deleted analysis {analysis_id}")
        return True

    # Genetic marker methods

    @staticmethod
    def _marker_record(marker: MarkerInterpretation) -> MarkerRecord:
        return MarkerRecord(**marker.model_dump())

    def add_markers(self, analysis_id: int, markers: Iterable[MarkerInterpretation]) -> List[GeneticMarker]:
        with self.SessionLocal.begin() as session:
            records = []
            for marker in markers:
                record = self._marker_record(marker)
                record.analysis_id = analysis_id
                records.append(record)
            session.add_all(records)
            session.flush()
            return [GeneticMarker.model_validate(record) for record in records]

    def markers_for_analysis(self, analysis_id: int) -> List[GeneticMarker]:
        with self.SessionLocal() as session:
            records = session.scalars(
                select(MarkerRecord).where(MarkerRecord.analysis_id == analysis_id).order_by(MarkerRecord.id)
            ).all()
            return [GeneticMarker.model_validate(record) for record in records]

    # Risk assessment methods

    def add_risk_assessments(self, analysis_id: int,
                             drafts: Iterable[RiskAssessmentDraft]) -> List[RiskAssessment]:
        with self.SessionLocal.begin() as session:
            records = [
                RiskAssessmentRecord(
                    analysis_id=analysis_id,
                    category=draft.category,
                    subcategory=draft.subcategory,
                    risk_level=draft.risk_level,
                    risk_label=risk_label(draft.risk_level),
                    percentage=risk_percentage(draft.risk_level),
                    description=draft.description,
                    recommendation=draft.recommendation,
                )
                for draft in drafts
            ]
            session.add_all(records)
            session.flush()
            return [RiskAssessment.model_validate(record) for record in records]

    def risk_assessments_for_analysis(self, analysis_id: int) -> List[RiskAssessment]:
        with self.SessionLocal() as session:
            records = session.scalars(
                select(RiskAssessmentRecord)
                .where(RiskAssessmentRecord.analysis_id == analysis_id)
                .order_by(RiskAssessmentRecord.id)
            ).all()
            return [RiskAssessment.model_validate(record) for record in records]

    # Chat message methods

    def add_chat_message(self, analysis_id: int, message: str, response: str) -> ChatMessage:
        with self.SessionLocal.begin() as session:
            record = ChatMessageRecord(analysis_id=analysis_id, message=message, response=response)
            session.add(record)
            session.flush()
            return ChatMessage.model_validate(record)

    def chat_messages_for_analysis(self, analysis_id: int) -> List[ChatMessage]:
        """Chat history, oldest first"""
        with self.SessionLocal() as session:
            records = session.scalars(
                select(ChatMessageRecord)
                .where(ChatMessageRecord.analysis_id == analysis_id)
                .order_by(ChatMessageRecord.id)
            ).all()
            return [ChatMessage.model_validate(record) for record in records]
