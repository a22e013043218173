"""
Genetic analysis endpoints - upload, overview, history, details and export
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.responses import JSONResponse

from genedash.core.errors import AnalysisNotFoundError, GeneticFileError
from genedash.schemas import (
    AnalysisDetails,
    AnalysisExport,
    AnalysisHistoryItem,
    AnalysisOverview,
    GeneticAnalysis,
    GeneticMarker,
    HistorySummary,
    RiskAssessment,
    UploadResponse,
)
from genedash.services.file_parser import SUPPORTED_EXTENSIONS, is_supported_file, parse_genetic_file
from genedash.services.pipeline import FileInfo

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/genetic-analysis", response_model=UploadResponse)
async def upload_genetic_file(
    api_request: Request,
    genetic_file: Optional[UploadFile] = File(None),
    progress_id: Optional[str] = Form(None),
):
    """Upload a genetic data file and analyze every marker in it

    Subscribe to ``/api/progress/{progress_id}`` before uploading to follow
    the run; the id is generated when the form does not carry one.
    """
    settings = api_request.app.state.settings
    pipeline = api_request.app.state.pipeline

    if genetic_file is None or not genetic_file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not is_supported_file(genetic_file.filename):
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format. Use one of: {', '.join(SUPPORTED_EXTENSIONS)}",
        )

    content = await genetic_file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File exceeds {settings.MAX_UPLOAD_SIZE_MB} MB limit")

    try:
        markers = parse_genetic_file(content, genetic_file.filename)
    except GeneticFileError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not markers:
        raise HTTPException(status_code=400, detail="No valid genetic markers found in file")

    progress_id = progress_id or uuid.uuid4().hex
    file_info = FileInfo(
        file_name=genetic_file.filename,
        file_size=len(content),
        file_type=genetic_file.content_type or "text/plain",
    )

    try:
        result = await pipeline.run(markers, file_info, progress_id)
    except Exception as e:
        logger.error(f"Genetic analysis error: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to analyze genetic data")

    if result.status == "completed":
        message = "Genetic analysis completed successfully"
    elif result.status == "partial":
        message = f"Genetic analysis completed with {len(result.failures)} failed markers"
    else:
        message = "No markers could be analyzed"

    return UploadResponse(
        analysis_id=result.analysis.id,
        progress_id=progress_id,
        status=result.status,
        summary=result.summary(),
        message=message,
    )


@router.get("/analysis-overview", response_model=AnalysisOverview)
def analysis_overview(api_request: Request):
    """Headline numbers of the most recent analysis"""
    storage = api_request.app.state.storage
    try:
        latest = storage.latest_analysis()
    except Exception as e:
        logger.error(f"Analysis overview error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get analysis overview")

    if latest is None:
        return AnalysisOverview(
            total_markers=0,
            analyzed_variants="0%",
            risk_factors="0",
            last_analysis="No analyses yet",
        )
    return AnalysisOverview(
        total_markers=latest.total_markers,
        analyzed_variants=f"{latest.analyzed_variants:g}%",
        risk_factors=str(latest.risk_factors),
        last_analysis=latest.created_at.strftime("%Y-%m-%d"),
    )


@router.get("/latest-analysis", response_model=Optional[GeneticAnalysis])
def latest_analysis(api_request: Request):
    storage = api_request.app.state.storage
    try:
        return storage.latest_analysis()
    except Exception as e:
        logger.error(f"Latest analysis error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get latest analysis")


@router.get("/analysis-history", response_model=List[AnalysisHistoryItem])
def analysis_history(api_request: Request):
    """Every analysis, newest first, with risk assessment counts"""
    storage = api_request.app.state.storage
    try:
        history = []
        for analysis in reversed(storage.list_analyses()):
            labels = [a.risk_label for a in storage.risk_assessments_for_analysis(analysis.id)]
            history.append(AnalysisHistoryItem(
                id=analysis.id,
                file_name=analysis.file_name,
                created_at=analysis.created_at,
                total_markers=analysis.total_markers,
                analyzed_variants=f"{analysis.analyzed_variants:g}%",
                risk_factors=analysis.risk_factors,
                status=analysis.status,
                summary=HistorySummary(
                    high_risk_count=labels.count("High"),
                    moderate_risk_count=labels.count("Moderate"),
                    low_risk_count=labels.count("Low"),
                    total_risk_assessments=len(labels),
                ),
            ))
        return history
    except Exception as e:
        logger.error(f"Analysis history error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get analysis history")


@router.get("/analysis/{analysis_id}", response_model=AnalysisDetails)
def analysis_details(analysis_id: int, api_request: Request):
    storage = api_request.app.state.storage
    try:
        analysis = storage.require_analysis(analysis_id)
    except AnalysisNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return AnalysisDetails(
        analysis=analysis,
        markers=storage.markers_for_analysis(analysis_id),
        risk_assessments=storage.risk_assessments_for_analysis(analysis_id),
    )


@router.delete("/analysis/{analysis_id}", status_code=204)
def delete_analysis(analysis_id: int, api_request: Request):
    """Delete an analysis with its markers, assessments and chat history"""
    storage = api_request.app.state.storage
    if not storage.delete_analysis(analysis_id):
        raise HTTPException(status_code=404, detail="Analysis not found")
    return Response(status_code=204)


@router.get("/markers/{analysis_id}", response_model=List[GeneticMarker])
def analysis_markers(analysis_id: int, api_request: Request):
    storage = api_request.app.state.storage
    try:
        return storage.markers_for_analysis(analysis_id)
    except Exception as e:
        logger.error(f"Get markers error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get genetic markers")


@router.get("/risk-assessments/{analysis_id}", response_model=List[RiskAssessment])
def analysis_risk_assessments(analysis_id: int, api_request: Request):
    storage = api_request.app.state.storage
    try:
        return storage.risk_assessments_for_analysis(analysis_id)
    except Exception as e:
        logger.error(f"Get risk assessments error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get risk assessments")


@router.get("/export/{analysis_id}")
def export_analysis(analysis_id: int, api_request: Request):
    """Download an analysis with its markers, assessments and chat history as JSON"""
    storage = api_request.app.state.storage
    try:
        analysis = storage.require_analysis(analysis_id)
    except AnalysisNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    export = AnalysisExport(
        analysis=analysis,
        markers=storage.markers_for_analysis(analysis_id),
        risk_assessments=storage.risk_assessments_for_analysis(analysis_id),
        chat_history=storage.chat_messages_for_analysis(analysis_id),
    )
    return JSONResponse(
        content=export.model_dump(mode="json"),
        headers={"Content-Disposition": f'attachment; filename="genetic-analysis-{analysis_id}.json"'},
    )
