"""Error taxonomy shared by the voice engine, services and routers."""
from typing import Iterable, List


class MockInterviewError(Exception):
    """Base class for all application errors."""


class CapabilityError(MockInterviewError):
    """A speech capability required to start a session is missing."""

    REMEDIATION = {
        "recognition": "Speech recognition is not supported here. Please use Chrome, Edge, or Safari.",
        "synthesis": "Text-to-speech is not supported here. Please use Chrome, Edge, or Safari.",
        "microphone": "Microphone access is required for voice interviews. Please allow microphone access and try again.",
    }

    def __init__(self, missing: Iterable[str]):
        self.missing: List[str] = list(missing)
        details = " ".join(self.REMEDIATION.get(name, name) for name in self.missing)
        super().__init__(f"Missing speech capabilities: {', '.join(self.missing)}. {details}".strip())


class MicrophonePermissionError(MockInterviewError):
    """Microphone access was denied while a session was running."""

    def __init__(self, message: str = "Microphone access denied. Please allow microphone permissions and try again."):
        super().__init__(message)


class RecognitionError(MockInterviewError):
    """Speech recognition kept failing after the retry budget was spent."""

    def __init__(self, code: str, attempts: int):
        self.code = code
        self.attempts = attempts
        super().__init__(f"Speech recognition error '{code}' after {attempts} attempts")


class SynthesisError(MockInterviewError):
    """Speech synthesis failed for a reason other than our own interruption."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Speech synthesis error: {code}")


class GenerationError(MockInterviewError):
    """The text-generation backend failed or returned nothing usable."""


class PersistenceError(MockInterviewError):
    """A document store read or write failed."""


class InterviewNotFoundError(MockInterviewError):
    """The referenced interview definition does not exist."""

    def __init__(self, interview_id: str):
        self.interview_id = interview_id
        super().__init__(f"Interview {interview_id} not found")
