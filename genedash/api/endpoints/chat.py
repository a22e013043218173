"""
Chat endpoints - questions about an analysis answered by the genetic AI service
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from genedash.core.errors import AnalysisNotFoundError, LLMError
from genedash.schemas import ChatMessage, ChatRequest, ChatResponse

logger = logging.getLogger(__name__)
router = APIRouter()

FALLBACK_RESPONSE = (
    "I'm having trouble processing your question right now. Please try rephrasing your question "
    "or ask about specific genetic markers in your analysis."
)

# Previous Q/A pairs sent along with a new question
CONTEXT_MESSAGES = 3


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, api_request: Request):
    """Ask a question about an analysis; the exchange is stored either way"""
    storage = api_request.app.state.storage
    ai_service = api_request.app.state.genetic_ai_service

    if not request.message or not request.message.strip() or not request.analysis_id:
        raise HTTPException(status_code=400, detail="Message and analysis ID required")
    try:
        await run_in_threadpool(storage.require_analysis, request.analysis_id)
    except AnalysisNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    markers = await run_in_threadpool(storage.markers_for_analysis, request.analysis_id)
    history = await run_in_threadpool(storage.chat_messages_for_analysis, request.analysis_id)
    previous = history[-CONTEXT_MESSAGES:]
    previous_context = "\n\n".join(f"Q: {m.message}\nA: {m.response}" for m in previous) or None

    try:
        answer = await ai_service.answer_question(request.message, markers, previous_context)
    except LLMError as e:
        logger.error(f"AI chat error: {e}")
        answer = FALLBACK_RESPONSE

    try:
        stored = await run_in_threadpool(storage.add_chat_message, request.analysis_id, request.message, answer)
    except Exception as e:
        logger.error(f"Chat error: {e}")
        raise HTTPException(status_code=500, detail="Failed to process chat message")

    return ChatResponse(id=stored.id, message=stored.message, response=stored.response, timestamp=stored.timestamp)


@router.get("/chat/{analysis_id}", response_model=List[ChatMessage])
def chat_history(analysis_id: int, api_request: Request):
    storage = api_request.app.state.storage
    try:
        return storage.chat_messages_for_analysis(analysis_id)
    except Exception as e:
        logger.error(f"Get chat history error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get chat history")
