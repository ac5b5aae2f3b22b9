"""Service for scoring finished interviews and storing feedback."""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from mockinterview.config import settings
from mockinterview.database import FEEDBACK, INTERVIEWS, DocumentStore
from mockinterview.exceptions import GenerationError, InterviewNotFoundError, PersistenceError
from mockinterview.models.conversation import ConversationMessage
from mockinterview.models.feedback import CATEGORY_NAMES, CategoryScore, FeedbackReport
from mockinterview.models.interview import InterviewDefinition
from mockinterview.services.llm_client import TextGenerationClient
from mockinterview.utils.keywords import detect_technologies
from mockinterview.utils.prompts import FEEDBACK_SYSTEM_PROMPT, feedback_prompt, format_transcript
from mockinterview.utils.text import clamp_score, extract_json_object, normalize_points

logger = logging.getLogger(__name__)

EXPERIENCE_RE = re.compile(r"\b(?:experienced?|projects?|built|shipped|worked|developed|implemented)\b", re.IGNORECASE)
TEAM_RE = re.compile(r"\b(?:teams?|teammates?|collaborat\w*|colleagues?|together|stakeholders?|pair(?:ed|ing)?)\b", re.IGNORECASE)
PROBLEM_RE = re.compile(
    r"\b(?:solved?|solving|debug\w*|fix(?:ed)?|approach\w*|challeng\w*|optimi[sz]\w*|trade[\s-]?offs?|root cause)\b",
    re.IGNORECASE
)
UNSURE_RE = re.compile(r"\b(?:i don'?t know|not sure|no idea|i guess|maybe)\b", re.IGNORECASE)

# Flat keys some models return instead of a categoryScores list.
FLAT_SCORE_KEYS = {
    "Communication Skills": ("communicationScore", "communicationComment"),
    "Technical Knowledge": ("technicalScore", "technicalComment"),
    "Problem Solving": ("problemSolvingScore", "problemSolvingComment"),
    "Cultural Fit": ("culturalFitScore", "culturalFitComment"),
    "Confidence and Clarity": ("confidenceScore", "confidenceComment"),
}


def _mentions_stack(text: str, techstack: Sequence[str]) -> List[str]:
    found = []
    for tech in techstack:
        if re.search(r"(?<![\w.+#])" + re.escape(tech) + r"(?![\w+#])", text, re.IGNORECASE):
            found.append(tech)
    for tech in detect_technologies(text):
        if tech not in found:
            found.append(tech)
    return found


def heuristic_feedback(transcript: Sequence[ConversationMessage], interview: InterviewDefinition) -> Dict[str, Any]:
    """Score a transcript from its length and keyword signals alone.

    Deterministic: the same transcript and interview always produce the same
    report. Each signal moves specific categories so reports differ with content.
    """
    answers = [m.content.strip() for m in transcript if m.role == "user" and m.content.strip()]
    text = " ".join(answers)
    exchanges = len(answers)
    words = [len(answer.split()) for answer in answers]
    avg_words = sum(words) / len(words) if words else 0

    techs = _mentions_stack(text, interview.techstack)
    experience = bool(EXPERIENCE_RE.search(text))
    team = bool(TEAM_RE.search(text))
    problem = bool(PROBLEM_RE.search(text))
    unsure = bool(UNSURE_RE.search(text))
    detailed = avg_words >= 25
    terse = 0 < avg_words < 8

    # More exchanges raise the baseline, capped so keywords still matter.
    base = min(40 + 5 * exchanges, 65)

    role = interview.role
    stack = ", ".join(interview.techstack) if interview.techstack else "the role's core technologies"

    communication = base + (10 if detailed else 0) + (5 if exchanges >= 3 else 0) - (10 if terse else 0)
    technical = base + (15 if techs else 0) + (5 if experience else 0)
    problem_solving = base + (12 if problem else 0) + (5 if experience else 0)
    cultural_fit = base + (15 if team else 0)
    confidence = base + (8 if detailed else 0) + (5 if experience else 0) - (10 if unsure else 0)

    comments = {
        "Communication Skills": (
            f"Answers were well developed, averaging about {int(avg_words)} words across {exchanges} responses."
            if detailed else
            f"Responses were brief, averaging about {int(avg_words)} words. Expanding answers with context and outcomes would help."
        ),
        "Technical Knowledge": (
            f"Referenced {', '.join(techs)}, which shows working familiarity relevant to a {role} position."
            if techs else
            f"Did not reference specific technologies. A {role} candidate should speak concretely about {stack}."
        ),
        "Problem Solving": (
            "Described how problems were approached and resolved, which shows structured thinking."
            if problem else
            "Did not walk through how problems were diagnosed or solved. Use concrete examples with steps and results."
        ),
        "Cultural Fit": (
            "Mentioned working with others and collaboration, which suggests a good team fit."
            if team else
            "Said little about teamwork or collaboration, so fit with a team is hard to judge."
        ),
        "Confidence and Clarity": (
            "Spoke with some hesitation. Commit to an answer and explain the reasoning behind it."
            if unsure else
            ("Drew on real experience, which made the answers sound confident."
             if experience else
             "Answers would sound more confident when backed by specific past experience.")
        ),
    }

    raw_scores = {
        "Communication Skills": communication,
        "Technical Knowledge": technical,
        "Problem Solving": problem_solving,
        "Cultural Fit": cultural_fit,
        "Confidence and Clarity": confidence,
    }
    category_scores = [
        CategoryScore(name=name, score=clamp_score(raw_scores[name]), comment=comments[name])
        for name in CATEGORY_NAMES
    ]
    total = clamp_score(sum(c.score for c in category_scores) / len(category_scores))

    strengths = []
    improvements = []
    if techs:
        strengths.append(f"Brought up relevant technologies such as {', '.join(techs[:3])}.")
    else:
        improvements.append(f"Talk concretely about {stack} and how you have used it.")
    if experience:
        strengths.append("Grounded answers in real projects and experience.")
    else:
        improvements.append("Support answers with examples from past projects.")
    if team:
        strengths.append("Showed a collaborative mindset.")
    else:
        improvements.append("Describe how you work with teammates and stakeholders.")
    if problem:
        strengths.append("Explained problem-solving approaches.")
    else:
        improvements.append("Walk through your reasoning when solving problems.")
    if detailed:
        strengths.append("Gave thorough, well-developed answers.")
    elif terse:
        improvements.append("Give fuller answers with context, actions and results.")

    assessment = (
        f"The candidate completed {exchanges} exchange{'s' if exchanges != 1 else ''} for the "
        f"{interview.level} {role} interview with an overall score of {total}. "
        + ("They showed clear strengths to build on. " if len(strengths) >= 3 else "There is clear room to grow. ")
        + "Focus next on the listed areas for improvement."
    )

    return {
        "total_score": total,
        "category_scores": category_scores,
        "strengths": strengths,
        "areas_for_improvement": improvements,
        "final_assessment": assessment,
    }


def parse_feedback(content: str) -> Optional[Dict[str, Any]]:
    """Pull a complete five-category report out of model output, or None."""
    data = extract_json_object(content)
    if not data:
        return None

    by_name: Dict[str, Dict[str, Any]] = {}
    for entry in data.get("categoryScores") or []:
        if isinstance(entry, dict) and entry.get("name") in CATEGORY_NAMES:
            by_name[entry["name"]] = entry
    for name, (score_key, comment_key) in FLAT_SCORE_KEYS.items():
        if name not in by_name and score_key in data:
            by_name[name] = {"score": data[score_key], "comment": data.get(comment_key, "")}

    category_scores = []
    for name in CATEGORY_NAMES:
        entry = by_name.get(name)
        if entry is None or not isinstance(entry.get("score"), (int, float)):
            return None
        category_scores.append(
            CategoryScore(name=name, score=entry["score"], comment=str(entry.get("comment") or ""))
        )

    total = data.get("totalScore")
    if not isinstance(total, (int, float)):
        total = sum(c.score for c in category_scores) / len(category_scores)

    return {
        "total_score": clamp_score(total),
        "category_scores": category_scores,
        "strengths": normalize_points(data.get("strengths")),
        "areas_for_improvement": normalize_points(data.get("areasForImprovement") or data.get("improvements")),
        "final_assessment": str(data.get("finalAssessment") or "").strip(),
    }


class FeedbackService:
    """Builds feedback reports and finalizes the interviews they belong to."""

    def __init__(self, store: DocumentStore, generator: TextGenerationClient):
        self.store = store
        self.generator = generator

    async def synthesize(
        self,
        transcript: Sequence[ConversationMessage],
        interview: InterviewDefinition,
        user_id: str
    ) -> FeedbackReport:
        """Score a transcript with the model, falling back to heuristics."""
        fields = None
        try:
            content = await self.generator.generate(
                feedback_prompt(format_transcript(transcript), interview.role, interview.level, interview.techstack),
                max_output_tokens=settings.feedback_max_tokens,
                temperature=settings.feedback_temperature,
                system=FEEDBACK_SYSTEM_PROMPT
            )
            fields = parse_feedback(content)
            if fields is None:
                logger.warning("Feedback response was not a complete report, using heuristic scoring")
        except GenerationError as e:
            logger.warning(f"Feedback generation failed, using heuristic scoring: {e}")

        if fields is None:
            fields = heuristic_feedback(transcript, interview)

        return FeedbackReport(
            interview_id=str(interview.id),
            user_id=user_id,
            **fields
        )

    async def create_feedback(
        self,
        interview_id: str,
        user_id: str,
        transcript: Sequence[ConversationMessage],
        feedback_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Score and store feedback, then finalize the interview.

        The feedback write and the finalize update are both attempted even if
        one of them fails. success reflects the feedback write, or the
        finalize update when there was nothing to score.
        """
        doc = await self.store.get(INTERVIEWS, interview_id)
        if not doc:
            raise InterviewNotFoundError(interview_id)
        interview = InterviewDefinition(**doc)

        if not any(m.role == "user" and m.content.strip() for m in transcript):
            logger.info(f"Empty transcript for interview {interview_id}, finalizing without feedback")
            finalized = await self._finalize(interview_id)
            return {"success": finalized, "feedbackId": None, "finalized": finalized}

        # 1. Score
        report = await self.synthesize(transcript, interview, user_id)

        # 2. Store feedback
        saved_id = None
        try:
            if feedback_id:
                saved_id = await self.store.set(FEEDBACK, feedback_id, report.to_document())
            else:
                saved_id = await self.store.create(FEEDBACK, report.to_document())
            logger.info(f"Saved feedback {saved_id} for interview {interview_id} (score {report.total_score})")
        except PersistenceError as e:
            logger.error(f"Failed to save feedback for interview {interview_id}: {e}")

        # 3. Finalize the interview regardless
        finalized = await self._finalize(interview_id)
        return {"success": saved_id is not None, "feedbackId": saved_id, "finalized": finalized}

    async def _finalize(self, interview_id: str) -> bool:
        try:
            return await self.store.update(INTERVIEWS, interview_id, {"finalized": True})
        except PersistenceError as e:
            logger.error(f"Failed to finalize interview {interview_id}: {e}")
            return False

    async def get_feedback_by_interview(self, interview_id: str, user_id: str) -> Optional[FeedbackReport]:
        docs = await self.store.query(FEEDBACK, {"interviewId": interview_id, "userId": user_id}, limit=1)
        return FeedbackReport(**docs[0]) if docs else None
