"""Feedback router."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from mockinterview.dependencies import get_feedback_service
from mockinterview.exceptions import InterviewNotFoundError
from mockinterview.models.feedback import FeedbackReport
from mockinterview.schemas.interview import FeedbackRequest, FeedbackResponse
from mockinterview.services.feedback_service import FeedbackService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Feedback"])


@router.post("/feedback", response_model=FeedbackResponse)
async def create_feedback(
    request: FeedbackRequest,
    service: FeedbackService = Depends(get_feedback_service)
):
    """Score a finished interview and finalize it."""
    try:
        result = await service.create_feedback(
            interview_id=request.interview_id,
            user_id=request.user_id,
            transcript=request.transcript,
            feedback_id=request.feedback_id
        )
    except InterviewNotFoundError as e:
        return JSONResponse(status_code=404, content={"success": False, "error": str(e)})
    except Exception as e:
        logger.error(f"Error creating feedback: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to create feedback"})

    response = FeedbackResponse(**result)
    if not response.success:
        return JSONResponse(status_code=500, content=response.model_dump(by_alias=True))
    return response


@router.get("/interviews/{interview_id}/feedback", response_model=FeedbackReport)
async def get_feedback(
    interview_id: str,
    user_id: str = Query(..., alias="userId"),
    service: FeedbackService = Depends(get_feedback_service)
):
    feedback = await service.get_feedback_by_interview(interview_id, user_id)
    if feedback is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return feedback
