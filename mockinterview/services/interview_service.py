"""Service for building and storing interview definitions."""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId

from mockinterview.config import settings
from mockinterview.database import DESCENDING, INTERVIEWS, DocumentStore
from mockinterview.exceptions import GenerationError, InterviewNotFoundError
from mockinterview.models.conversation import ConversationMessage
from mockinterview.models.interview import InterviewDefinition, InterviewDetails
from mockinterview.services.llm_client import TextGenerationClient
from mockinterview.utils.keywords import DetectedDetails, detect_details, detect_level, detect_type
from mockinterview.utils.prompts import extraction_prompt, format_transcript, questions_prompt
from mockinterview.utils.text import (
    extract_json_array,
    extract_json_object,
    split_question_lines,
    voice_safe,
)

logger = logging.getLogger(__name__)

Conversation = Union[str, Sequence[ConversationMessage], Sequence[Dict[str, Any]]]

DEFAULT_DETAILS = {
    "role": "Software Developer",
    "level": "mid-level",
    "type": "mixed",
    "techstack": ["JavaScript", "React"],
    "amount": 5,
}

MIN_QUESTION_LENGTH = 10

TECHNICAL_TEMPLATES = (
    "Can you walk me through a recent project where you used {tech}, and what your role was?",
    "What are the core concepts of {tech} that every {role} should understand well?",
    "How do you approach debugging a difficult issue in a {tech} codebase?",
    "How would you structure a new {tech} project so that it stays maintainable as it grows?",
    "What performance problems have you run into with {tech}, and how did you solve them?",
    "How do you write tests for code built with {tech}?",
    "Describe how you would design a feature end to end as a {level} {role}.",
    "What trade-offs do you consider when choosing between {tech} and an alternative?",
    "How do you keep your {tech} skills current, and what have you learned recently?",
    "Explain a technical decision you made that you would change today, and why.",
)

BEHAVIORAL_TEMPLATES = (
    "Tell me about yourself and what drew you to working as a {role}.",
    "Describe a time you had to resolve a disagreement with a teammate.",
    "Tell me about a project that did not go as planned. What did you learn?",
    "How do you prioritize your work when several deadlines compete?",
    "Describe a situation where you had to learn something new very quickly.",
    "Tell me about a time you received difficult feedback and how you responded.",
    "How do you communicate technical ideas to people without a technical background?",
    "Describe a moment you took ownership of a problem outside your usual responsibilities.",
    "What kind of team environment helps you do your best work?",
    "Where do you see yourself growing over the next few years as a {role}?",
)


def _user_utterances(conversation: Conversation) -> List[str]:
    """User-side text of a transcript given as messages or as "role: content" lines."""
    if isinstance(conversation, str):
        lines = [line.strip().lstrip("-").strip() for line in conversation.splitlines()]
        tagged = [line for line in lines if line.lower().startswith(("user:", "assistant:"))]
        if not tagged:
            return [conversation]
        return [line.split(":", 1)[1].strip() for line in tagged if line.lower().startswith("user:")]

    utterances = []
    for message in conversation:
        if isinstance(message, dict):
            role, content = message.get("role"), message.get("content", "")
        else:
            role, content = message.role, message.content
        if role == "user" and content:
            utterances.append(content)
    return utterances


def _valid_extracted_fields(extracted: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the fields of a model extraction that are usable as-is."""
    fields: Dict[str, Any] = {}

    role = extracted.get("role")
    if isinstance(role, str) and role.strip():
        fields["role"] = role.strip()

    level = detect_level(str(extracted.get("level") or ""))
    if level:
        fields["level"] = level

    interview_type = detect_type(str(extracted.get("type") or ""))
    if interview_type:
        fields["type"] = interview_type

    techstack = extracted.get("techstack")
    if isinstance(techstack, str):
        techstack = techstack.split(",")
    if isinstance(techstack, list):
        techstack = [str(t).strip() for t in techstack if str(t).strip()]
        if techstack:
            fields["techstack"] = techstack

    try:
        amount = int(extracted.get("amount"))
        if amount > 0:
            fields["amount"] = amount
    except (TypeError, ValueError):
        pass

    return fields


def _heuristic_fields(detected: DetectedDetails) -> Dict[str, Any]:
    # Without a role the keyword parse is not trusted at all.
    if not detected.role:
        return {}
    fields = {"role": detected.role}
    if detected.level:
        fields["level"] = detected.level
    if detected.type:
        fields["type"] = detected.type
    if detected.techstack:
        fields["techstack"] = list(detected.techstack)
    if detected.amount:
        fields["amount"] = detected.amount
    return fields


def template_questions(details: InterviewDetails, count: int, exclude: Sequence[str] = ()) -> List[str]:
    """Deterministic questions built from role, tech stack and type."""
    if count <= 0:
        return []
    techs = details.techstack or ["the technologies you use most"]
    values = {"role": details.role, "level": details.level}

    technical = [
        template.format(tech=techs[i % len(techs)], **values)
        for i, template in enumerate(TECHNICAL_TEMPLATES)
    ]
    behavioral = [template.format(**values) for template in BEHAVIORAL_TEMPLATES]

    if details.type == "technical":
        ordered = technical + behavioral
    elif details.type == "behavioral":
        ordered = behavioral + technical
    else:
        ordered = [q for pair in zip(technical, behavioral) for q in pair]

    seen = {q.lower() for q in exclude}
    questions = []
    for question in ordered:
        question = voice_safe(question)
        if question.lower() in seen:
            continue
        seen.add(question.lower())
        questions.append(question)
        if len(questions) == count:
            break
    return questions


class InterviewGenerationService:
    """Turns forms or setup conversations into stored interview definitions."""

    def __init__(self, store: DocumentStore, generator: TextGenerationClient):
        self.store = store
        self.generator = generator

    async def resolve_details(self, conversation: Conversation) -> InterviewDetails:
        """Work out role, level, type, tech stack and amount from a setup conversation.

        Model extraction is tried first. Fields it gets wrong are filled from
        keyword detection over the user's own utterances, and anything still
        missing takes the fixed defaults. Never raises.
        """
        transcript = conversation if isinstance(conversation, str) else format_transcript(conversation)

        # 1. Ask the model for a JSON object
        extracted: Dict[str, Any] = {}
        try:
            content = await self.generator.generate(
                extraction_prompt(transcript),
                max_output_tokens=settings.extraction_max_tokens,
                temperature=settings.extraction_temperature
            )
            parsed = extract_json_object(content)
            if parsed is None:
                logger.warning("No JSON object in detail extraction response, using fallbacks")
            else:
                extracted = _valid_extracted_fields(parsed)
        except GenerationError as e:
            logger.warning(f"Detail extraction failed, using fallbacks: {e}")

        # 2. Keyword detection over what the user actually said
        heuristic = _heuristic_fields(detect_details(_user_utterances(conversation)))

        # 3. Merge: model, then keywords, then defaults
        merged = dict(DEFAULT_DETAILS)
        merged.update(heuristic)
        merged.update(extracted)
        details = InterviewDetails(**merged)
        logger.info(
            f"Resolved interview details: {details.role} / {details.level} / "
            f"{details.type} / {details.techstack} / {details.amount}"
        )
        return details

    async def generate_questions(self, details: InterviewDetails) -> List[str]:
        """Return exactly details.amount voice-safe questions."""
        content = ""
        try:
            content = await self.generator.generate(
                questions_prompt(details.role, details.level, details.techstack, details.type, details.amount),
                max_output_tokens=settings.questions_max_tokens,
                temperature=settings.questions_temperature
            )
        except GenerationError as e:
            logger.warning(f"Question generation failed, using templates: {e}")

        questions: List[str] = []
        seen = set()
        for candidate in self._parse_questions(content):
            question = voice_safe(candidate)
            if len(question) < MIN_QUESTION_LENGTH or question.lower() in seen:
                continue
            seen.add(question.lower())
            questions.append(question)

        questions = questions[:details.amount]
        missing = details.amount - len(questions)
        if missing > 0:
            logger.info(f"Topping up {missing} template question(s) for {details.role}")
            questions.extend(template_questions(details, missing, exclude=questions))
        return questions

    @staticmethod
    def _parse_questions(content: str) -> List[str]:
        if not content:
            return []
        array = extract_json_array(content)
        if array:
            parsed = []
            for item in array:
                if isinstance(item, dict):
                    item = item.get("question") or item.get("text")
                if isinstance(item, str):
                    parsed.append(item)
            if parsed:
                return parsed
        return split_question_lines(content, MIN_QUESTION_LENGTH)

    async def create_from_form(self, user_id: str, details: InterviewDetails) -> InterviewDefinition:
        """Generate questions for explicit details and store the interview."""
        questions = await self.generate_questions(details)
        interview = InterviewDefinition(
            role=details.role,
            level=details.level,
            type=details.type,
            techstack=details.techstack,
            questions=questions,
            user_id=user_id,
            amount=details.amount
        )
        interview_id = await self.store.create(INTERVIEWS, interview.to_document())
        interview.id = ObjectId(interview_id)
        logger.info(f"Created interview {interview_id} for user {user_id} with {len(questions)} questions")
        return interview

    async def create_from_transcript(
        self,
        user_id: str,
        conversation: Conversation
    ) -> Tuple[InterviewDefinition, InterviewDetails]:
        details = await self.resolve_details(conversation)
        interview = await self.create_from_form(user_id, details)
        return interview, details

    async def get_interview(self, interview_id: str) -> Optional[InterviewDefinition]:
        if not ObjectId.is_valid(interview_id):
            return None
        doc = await self.store.get(INTERVIEWS, interview_id)
        return InterviewDefinition(**doc) if doc else None

    async def get_user_interviews(self, user_id: str) -> List[InterviewDefinition]:
        docs = await self.store.query(INTERVIEWS, {"userId": user_id}, order_by=("createdAt", DESCENDING))
        return [InterviewDefinition(**doc) for doc in docs]

    async def get_pending_interviews(self, user_id: str) -> List[InterviewDefinition]:
        return await self._by_status(user_id, finalized=False)

    async def get_completed_interviews(self, user_id: str) -> List[InterviewDefinition]:
        return await self._by_status(user_id, finalized=True)

    async def _by_status(self, user_id: str, finalized: bool) -> List[InterviewDefinition]:
        # Sorted here so the query needs no compound index.
        docs = await self.store.query(INTERVIEWS, {"userId": user_id, "finalized": finalized})
        interviews = [InterviewDefinition(**doc) for doc in docs]
        interviews.sort(key=lambda i: i.created_at, reverse=True)
        return interviews

    async def get_latest_interviews(self, user_id: str, limit: int = 20) -> List[InterviewDefinition]:
        """Finalized interviews taken by other users, newest first."""
        docs = await self.store.query(
            INTERVIEWS,
            {"finalized": True, "userId": {"$ne": user_id}},
            order_by=("createdAt", DESCENDING),
            limit=limit
        )
        return [InterviewDefinition(**doc) for doc in docs]

    async def complete_interview(self, interview_id: str) -> None:
        """Mark an interview finalized without producing feedback."""
        if not ObjectId.is_valid(interview_id):
            raise InterviewNotFoundError(interview_id)
        matched = await self.store.update(INTERVIEWS, interview_id, {"finalized": True})
        if not matched:
            raise InterviewNotFoundError(interview_id)
        logger.info(f"Interview {interview_id} finalized without feedback")
