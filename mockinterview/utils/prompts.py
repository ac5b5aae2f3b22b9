"""Prompt builders for the interviewer, detail extraction, questions and feedback."""
from typing import List, Optional, Sequence

INTERVIEWER_SYSTEM_PROMPT = """You are a professional job interviewer conducting a real-time voice interview with a candidate. Your goal is to assess their qualifications, motivation, and fit for the role.

Interview Guidelines:
- Follow the structured question flow. Ask one question at a time.
- Listen actively and acknowledge responses briefly before moving on.
- Ask brief follow-up questions only if a response is vague or requires more detail.
- Keep the conversation flowing smoothly while maintaining control.

Be professional, yet warm and welcoming:
- Use official yet friendly language.
- Keep responses concise and to the point, like in a real voice interview.
- Avoid robotic phrasing; sound natural and conversational.

Conclude the interview properly:
- Thank the candidate for their time.
- Let them know the company will reach out soon with feedback.
- End the conversation on a polite and positive note.

This is a voice conversation, so keep your responses short. Never use special characters such as slashes or asterisks."""

GENERATE_SYSTEM_PROMPT = """You are a professional interview question generator assistant. Help the user set up a mock interview for their job role. Be conversational and keep each reply to one or two short sentences since this is a voice conversation. Never use special characters such as slashes, asterisks or bullet points."""

SLOT_QUESTIONS = {
    "role": "which job role they are preparing for",
    "level": "their experience level: entry, mid or senior",
    "techstack": "which technologies or tech stack the role uses",
    "type": "whether they want technical, behavioral or a mix of questions",
    "amount": "how many questions they would like",
}


def numbered(items: Sequence[str]) -> str:
    return "\n".join(f"{i + 1}. {item}" for i, item in enumerate(items))


def interviewer_prompt_with_questions(questions: List[str]) -> str:
    """The interviewer system prompt with the question list appended."""
    return f"""{INTERVIEWER_SYSTEM_PROMPT}

Interview Questions to ask:
{numbered(questions)}

Start with the first question and proceed naturally through the interview."""


def format_transcript(messages) -> str:
    """Render a transcript as "- role: content" lines."""
    lines = []
    for message in messages:
        if isinstance(message, dict):
            role, content = message.get("role"), message.get("content", "")
        else:
            role, content = message.role, message.content
        lines.append(f"- {role}: {content}")
    return "\n".join(lines)


def extraction_prompt(conversation: str) -> str:
    return f"""Analyze this conversation between a user and an AI assistant to extract interview details:

{conversation}

Extract the following information and respond in this exact JSON format:
{{
  "role": "job title (e.g., Frontend Developer, Software Engineer)",
  "level": "entry-level, mid-level, or senior-level",
  "type": "technical, behavioral, or mixed",
  "techstack": ["technology1", "technology2"],
  "amount": number of questions (default to 5 if not specified)
}}

Respond with the JSON object only."""


def questions_prompt(role: str, level: str, techstack: List[str], interview_type: str, amount: int) -> str:
    stack = ", ".join(techstack) if techstack else "general software development"
    return f"""Prepare questions for a job interview.
The job role is {role}.
The job experience level is {level}.
The tech stack used in the job is: {stack}.
The focus between behavioural and technical questions should lean towards: {interview_type}.
The amount of questions required is exactly {amount}.
Questions must be specific to the role and get progressively harder, starting with a warm-up question.
Please return only the questions, without any additional text.
The questions are going to be read by a voice assistant so do not use "/" or "*" or any other special characters which might break the voice assistant.
Return the questions as a JSON array of strings formatted like this:
["Question 1", "Question 2", "Question 3"]"""


FEEDBACK_SYSTEM_PROMPT = "You are a professional interviewer analyzing a mock interview. Your task is to evaluate the candidate based on structured categories."


def feedback_prompt(transcript: str, role: str, level: str, techstack: List[str]) -> str:
    stack = ", ".join(techstack) if techstack else "not specified"
    return f"""You are an AI interviewer analyzing a mock interview for a {level} {role} position (tech stack: {stack}).
Evaluate the candidate based on structured categories. Be thorough and detailed in your analysis. Don't be lenient with the candidate. If there are mistakes or areas for improvement, point them out and cite specific moments from the transcript.

Transcript:
{transcript}

Score the candidate from 0 to 100 in the following areas. Do not add categories other than the ones provided:
- Communication Skills: Clarity, articulation, structured responses.
- Technical Knowledge: Understanding of key concepts for the role.
- Problem Solving: Ability to analyze problems and propose solutions.
- Cultural Fit: Alignment with company values and job role.
- Confidence and Clarity: Confidence in responses, engagement, and clarity.

Respond with a single JSON object in exactly this format:
{{
  "totalScore": 0,
  "categoryScores": [
    {{"name": "Communication Skills", "score": 0, "comment": "..."}},
    {{"name": "Technical Knowledge", "score": 0, "comment": "..."}},
    {{"name": "Problem Solving", "score": 0, "comment": "..."}},
    {{"name": "Cultural Fit", "score": 0, "comment": "..."}},
    {{"name": "Confidence and Clarity", "score": 0, "comment": "..."}}
  ],
  "strengths": ["..."],
  "areasForImprovement": ["..."],
  "finalAssessment": "..."
}}"""


def generate_turn_prompt(
    user_name: str,
    detected: dict,
    slot: Optional[str],
    summary: Optional[str] = None
) -> str:
    """Instruction for phrasing the next setup turn given what is already known."""
    known = ", ".join(f"{k}: {v}" for k, v in detected.items() if v) or "nothing yet"
    if slot is None:
        return f"""The user {user_name} has described the interview they want. Details so far: {known}.
Briefly confirm this summary back to them in one or two sentences and tell them they can end the call to generate the interview: {summary}"""
    return f"""The user {user_name} is setting up a mock interview. Details so far: {known}.
Acknowledge what they just said in a few words, then ask {SLOT_QUESTIONS[slot]}. Reply with one or two short sentences."""
