"""Chat router."""
import logging

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from mockinterview.dependencies import get_responder
from mockinterview.schemas.chat import ChatRequest, ChatResponse, SessionChatRequest
from mockinterview.services.responder import ConversationResponder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest = Body(...),
    responder: ConversationResponder = Depends(get_responder)
):
    """Next assistant utterance for a voice session or a raw message list."""
    try:
        if isinstance(payload, SessionChatRequest):
            text = await responder.reply(payload.history(), payload.context())
        else:
            text = await responder.legacy_reply(
                [m.model_dump() for m in payload.messages],
                payload.questions
            )
        return ChatResponse(response=text)
    except Exception as e:
        logger.error(f"Error generating AI response: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to generate response"})
