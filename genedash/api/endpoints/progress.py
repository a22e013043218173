"""
Progress endpoint - Server-Sent Events stream of a running analysis
"""

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

router = APIRouter()


@router.get("/progress/{progress_id}")
async def progress_stream(progress_id: str, api_request: Request):
    """Stream progress events for the upload that carries progress_id"""
    broker = api_request.app.state.progress_broker
    # Subscribed before streaming starts
    queue = broker.open(progress_id)
    return StreamingResponse(
        broker.subscribe(progress_id, queue),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
