"""Next-utterance logic for interview and setup conversations."""
import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Sequence

from mockinterview.config import settings
from mockinterview.exceptions import GenerationError
from mockinterview.models.conversation import ConversationConfig, ConversationMessage, TurnContext
from mockinterview.services.llm_client import TextGenerationClient
from mockinterview.utils.keywords import (
    DEFAULT_LEVEL,
    DEFAULT_TYPE,
    DetectedDetails,
    detect_details,
    detect_role,
    detect_technologies,
)
from mockinterview.utils.prompts import (
    GENERATE_SYSTEM_PROMPT,
    INTERVIEWER_SYSTEM_PROMPT,
    generate_turn_prompt,
    interviewer_prompt_with_questions,
)
from mockinterview.utils.text import voice_safe

logger = logging.getLogger(__name__)

APOLOGY = "I'm sorry, I had a little trouble with that. Could you please say that again?"

TRANSITIONS: Dict[str, Sequence[str]] = {
    "long": (
        "Thank you for that detailed answer.",
        "That's a thorough explanation, thank you.",
        "I appreciate all the detail there.",
        "Great, that gives me a clear picture.",
    ),
    "medium": (
        "Thank you for sharing that.",
        "Got it, thanks.",
        "Okay, that makes sense.",
        "Good, thank you.",
    ),
    "short": (
        "Alright.",
        "Okay, noted.",
        "Understood.",
        "Thanks, let's keep going.",
    ),
    "unsure": (
        "No problem, that's a tough one.",
        "That's alright, let's move on.",
        "No worries at all.",
        "That's okay, let's try another one.",
    ),
}

UNSURE_RE = re.compile(r"\b(?:i don'?t know|not sure|no idea|can'?t remember|i'?m unsure|pass)\b", re.IGNORECASE)

CLOSING_REMARK = (
    "That brings us to the end of my questions. "
    "Before we wrap up, do you have any questions for me?"
)

SLOT_PROMPTS: Dict[str, Sequence[str]] = {
    "role": (
        "What role are you preparing for?",
        "Could you tell me the job title you have in mind, for example frontend developer or data engineer?",
    ),
    "level": (
        "What experience level is the role: entry, mid or senior?",
        "Is this for a junior, mid-level or senior position?",
    ),
    "techstack": (
        "Which technologies does the role use?",
        "What is the main tech stack, for example React, Python or Java?",
    ),
    "type": (
        "Would you like technical questions, behavioral questions, or a mix of both?",
        "Should I focus on technical or behavioral questions, or combine them?",
    ),
    "amount": (
        "How many questions would you like?",
        "Roughly how many questions should I prepare, for example five or ten?",
    ),
}


def classify_answer(answer: str) -> str:
    """Bucket a user answer for picking a transitional remark."""
    words = len(answer.split())
    if UNSURE_RE.search(answer) and words < 25:
        return "unsure"
    if words >= 40:
        return "long"
    if words >= 12:
        return "medium"
    return "short"


def pick_transition(answer: str, turn: int, previous: Optional[str] = None) -> str:
    """Rotate through the pool for this answer, never repeating the previous remark."""
    pool = TRANSITIONS[classify_answer(answer)]
    for offset in range(len(pool)):
        remark = pool[(turn + offset) % len(pool)]
        if not previous or not previous.startswith(remark):
            return remark
    return pool[turn % len(pool)]


def farewell(user_name: str) -> str:
    return (
        f"Thank you so much for your time today, {user_name}. "
        "I'll put together your feedback now. Best of luck, and goodbye!"
    )


def greeting(config: ConversationConfig) -> str:
    """Opening line of a session. In interview mode it asks the first question."""
    if config.mode == "generate":
        return (
            f"Hello {config.user_name}! I'm here to help you set up a mock interview. "
            "What type of role are you preparing for?"
        )
    intro = (
        f"Hello {config.user_name}! Thank you for taking the time to speak with me today. "
    )
    if not config.questions:
        return intro + CLOSING_REMARK
    return intro + f"Let's start with the first question. {config.questions[0]}"


def next_slot(detected: DetectedDetails, asked: Counter) -> Optional[str]:
    """First missing detail that has been asked about fewer than two times."""
    for slot in detected.missing():
        if asked[slot] < 2:
            return slot
    return None


def replay_slot_asks(history: Sequence[ConversationMessage]) -> Counter:
    """Rebuild how often each detail has been asked for from the history alone."""
    asked: Counter = Counter()
    user_texts: List[str] = []
    for message in history:
        if message.role == "user":
            user_texts.append(message.content)
            continue
        slot = next_slot(detect_details(user_texts), asked)
        if slot:
            asked[slot] += 1
    return asked


def summarize(detected: DetectedDetails) -> str:
    level = (detected.level or DEFAULT_LEVEL).replace("-", " ")
    interview_type = detected.type or DEFAULT_TYPE
    kind = "a mix of technical and behavioral" if interview_type == "mixed" else interview_type
    amount = detected.amount or settings.default_question_amount
    role = detected.role or "software developer"
    stack = f" focusing on {', '.join(detected.techstack)}" if detected.techstack else ""
    return f"a {level} {role} interview{stack}, with {amount} {kind} questions"


class ConversationResponder:
    """Produces the next assistant utterance for a conversation.

    Interview mode is scripted from the question list. Setup conversations use
    keyword detection to decide what to ask and the model to phrase it.
    """

    def __init__(self, generator: TextGenerationClient):
        self.generator = generator

    async def reply(self, history: Sequence[ConversationMessage], context: TurnContext) -> str:
        if context.mode == "interview":
            return self.interview_reply(history, context)
        return await self.generate_reply(history, context)

    def interview_reply(self, history: Sequence[ConversationMessage], context: TurnContext) -> str:
        questions = context.questions
        index = context.current_question_index
        if index > len(questions):
            return farewell(context.user_name)

        user_turns = [m for m in history if m.role == "user"]
        last_answer = user_turns[-1].content if user_turns else ""
        previous = next((m.content for m in reversed(history) if m.role == "assistant"), None)
        remark = pick_transition(last_answer, len(user_turns), previous)

        if index == len(questions):
            return f"{remark} {CLOSING_REMARK}"
        return f"{remark} {questions[index]}"

    async def generate_reply(self, history: Sequence[ConversationMessage], context: TurnContext) -> str:
        user_texts = [m.content for m in history if m.role == "user"]
        detected = detect_details(user_texts)
        asked = replay_slot_asks(history)
        slot = next_slot(detected, asked)
        summary = summarize(detected)

        try:
            instruction = generate_turn_prompt(
                context.user_name,
                {
                    "role": detected.role,
                    "level": detected.level,
                    "tech stack": ", ".join(detected.techstack),
                    "type": detected.type,
                    "questions": detected.amount,
                },
                slot,
                summary
            )
            messages = [{"role": m.role, "content": m.content} for m in history]
            text = await self.generator.generate(
                messages,
                max_output_tokens=settings.chat_max_tokens,
                temperature=settings.chat_temperature,
                system=f"{GENERATE_SYSTEM_PROMPT}\n\n{instruction}"
            )
            text = voice_safe(text)
            if text:
                return text
        except GenerationError as e:
            logger.warning(f"Setup turn generation failed, using template: {e}")

        return voice_safe(self._template_turn(user_texts[-1] if user_texts else "", slot, asked, summary))

    @staticmethod
    def _template_turn(last_text: str, slot: Optional[str], asked: Counter, summary: str) -> str:
        techs = detect_technologies(last_text)
        role = detect_role(last_text)
        if techs and role:
            ack = f"Great, a {role} role working with {' and '.join(techs[:3])}."
        elif techs:
            ack = f"Great, {' and '.join(techs[:3])} noted."
        elif role:
            ack = f"Got it, {role}."
        else:
            ack = "Got it."

        if slot is None:
            return f"{ack} So that's {summary}. When you're ready, end the call and I'll generate your interview."
        return f"{ack} {SLOT_PROMPTS[slot][min(asked[slot], 1)]}"

    async def legacy_reply(self, messages: List[Dict[str, str]], questions: Optional[List[str]] = None) -> str:
        """Free-form completion over caller-supplied messages.

        When the caller's system message is the interviewer prompt and a
        question list is given, the list is appended to it. Errors propagate.
        """
        system = None
        rest = list(messages)
        if rest and rest[0].get("role") == "system":
            system = rest.pop(0).get("content")

        is_interview = any(INTERVIEWER_SYSTEM_PROMPT in (m.get("content") or "") for m in messages)
        if is_interview and questions:
            system = interviewer_prompt_with_questions(questions)

        return await self.generator.generate(
            rest,
            max_output_tokens=settings.chat_max_tokens,
            temperature=settings.chat_temperature,
            system=system
        )
