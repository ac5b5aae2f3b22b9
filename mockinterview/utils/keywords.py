"""Keyword vocabulary and best-effort detection of interview details in free text.

Detection is conservative: a field is only reported when the
text names it explicitly, otherwise it stays None and callers fall back to
their documented defaults.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

DEFAULT_LEVEL = "mid-level"
DEFAULT_TYPE = "mixed"

# canonical name -> spoken/written aliases (lowercase)
TECHNOLOGIES: Dict[str, Tuple[str, ...]] = {
    "React": ("react", "react.js", "reactjs"),
    "React Native": ("react native",),
    "TypeScript": ("typescript",),
    "JavaScript": ("javascript",),
    "Node.js": ("node.js", "nodejs"),
    "Next.js": ("next.js", "nextjs"),
    "Vue": ("vue", "vue.js", "vuejs"),
    "Angular": ("angular",),
    "Redux": ("redux",),
    "HTML": ("html",),
    "CSS": ("css",),
    "Tailwind CSS": ("tailwind",),
    "Python": ("python",),
    "Django": ("django",),
    "Flask": ("flask",),
    "FastAPI": ("fastapi",),
    "Java": ("java",),
    "Spring": ("spring", "spring boot"),
    "Kotlin": ("kotlin",),
    "Swift": ("swift",),
    "Go": ("golang",),
    "Rust": ("rust",),
    "C++": ("c++",),
    "C#": ("c#", "c sharp"),
    ".NET": (".net", "dotnet"),
    "Ruby": ("ruby",),
    "Ruby on Rails": ("ruby on rails", "rails"),
    "PHP": ("php",),
    "Laravel": ("laravel",),
    "GraphQL": ("graphql",),
    "REST": ("rest api", "rest apis", "restful"),
    "SQL": ("sql",),
    "PostgreSQL": ("postgresql", "postgres"),
    "MySQL": ("mysql",),
    "MongoDB": ("mongodb", "mongo"),
    "Redis": ("redis",),
    "AWS": ("aws", "amazon web services"),
    "Azure": ("azure",),
    "Google Cloud": ("gcp", "google cloud"),
    "Docker": ("docker",),
    "Kubernetes": ("kubernetes", "k8s"),
    "Terraform": ("terraform",),
    "Git": ("git",),
    "Linux": ("linux",),
    "TensorFlow": ("tensorflow",),
    "PyTorch": ("pytorch",),
    "Pandas": ("pandas",),
    "Spark": ("apache spark", "spark"),
    "Kafka": ("kafka",),
    "Flutter": ("flutter",),
}

ROLE_AREAS: List[Tuple[str, str]] = [
    (r"front[\s-]?end", "Frontend"),
    (r"back[\s-]?end", "Backend"),
    (r"full[\s-]?stack", "Full Stack"),
    (r"site reliability", "Site Reliability"),
    (r"machine[\s-]learning|ml", "Machine Learning"),
    (r"quality assurance|qa", "QA"),
    (r"dev[\s-]?ops", "DevOps"),
    (r"software", "Software"),
    (r"web", "Web"),
    (r"mobile", "Mobile"),
    (r"ios", "iOS"),
    (r"android", "Android"),
    (r"cloud", "Cloud"),
    (r"data", "Data"),
    (r"security", "Security"),
    (r"platform", "Platform"),
    (r"game", "Game"),
    (r"embedded", "Embedded"),
    (r"product", "Product"),
    (r"ux|ui", "UX"),
    (r"python", "Python"),
    (r"javascript", "JavaScript"),
    (r"java", "Java"),
    (r"react", "React"),
    (r"node(?:\.js)?", "Node.js"),
]

ROLE_NOUNS = (
    "developer", "engineer", "scientist", "analyst", "architect",
    "designer", "manager", "tester", "administrator", "specialist",
)

SENIOR_TITLES = ("lead", "staff", "principal")

LEVEL_PATTERNS: List[Tuple[str, str]] = [
    (
        r"senior|sr\.?|(?:" + "|".join(SENIOR_TITLES) + r")"
        r"(?=\s+(?:[\w.-]+\s+)?(?:" + "|".join(ROLE_NOUNS) + r")s?\b)",
        "senior-level"
    ),
    (r"junior|jr\.?|entry[\s-]?level|entry|intern(?:ship)?|graduate|new grad|beginner", "entry-level"),
    (r"mid[\s-]?level|mid|intermediate|middle", "mid-level"),
]

TYPE_PATTERNS: Dict[str, str] = {
    "mixed": r"mixed|mix|combination|balanced",
    "behavioral": r"behaviou?ral|soft[\s-]skills?",
    "technical": r"technical|coding",
}

NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
    "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13,
    "fourteen": 14, "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20,
}

_ROLE_RE = re.compile(
    r"\b(?P<area>" + "|".join(f"(?:{pattern})" for pattern, _ in ROLE_AREAS) + r")\s+"
    r"(?P<noun>" + "|".join(ROLE_NOUNS) + r")s?\b",
    re.IGNORECASE
)
_AMOUNT_RE = re.compile(
    r"\b(?P<count>\d{1,2}|" + "|".join(NUMBER_WORDS) + r")\s+(?:\w+\s+)?questions?\b",
    re.IGNORECASE
)


def _alias_pattern(alias: str) -> str:
    return r"(?<![\w.+#])" + re.escape(alias) + r"(?![\w+#])"


# longest aliases first so "react native" wins over "react"
_TECH_ALIASES = sorted(
    ((re.compile(_alias_pattern(alias), re.IGNORECASE), name)
     for name, aliases in TECHNOLOGIES.items() for alias in aliases),
    key=lambda item: len(item[0].pattern),
    reverse=True
)


def detect_technologies(text: str) -> List[str]:
    """Return canonical technology names in order of first mention."""
    taken: List[Tuple[int, int]] = []
    found: List[Tuple[int, str]] = []
    for pattern, name in _TECH_ALIASES:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < t_end and end > t_start for t_start, t_end in taken):
                continue
            taken.append((start, end))
            found.append((start, name))
    ordered: List[str] = []
    for _, name in sorted(found):
        if name not in ordered:
            ordered.append(name)
    return ordered


def _canonical_area(area: str) -> str:
    for pattern, canonical in ROLE_AREAS:
        if re.fullmatch(pattern, area, re.IGNORECASE):
            return canonical
    return area.title()


def detect_role(text: str) -> Optional[str]:
    """Return the last role title mentioned, e.g. "Frontend Developer"."""
    role = None
    for match in _ROLE_RE.finditer(text):
        role = f"{_canonical_area(match.group('area'))} {match.group('noun').lower().title()}"
    return role


def _last_level(text: str) -> Optional[str]:
    best: Optional[Tuple[int, str]] = None
    for pattern, level in LEVEL_PATTERNS:
        for match in re.finditer(rf"\b(?:{pattern})(?!\w)", text, re.IGNORECASE):
            if best is None or match.start() > best[0]:
                best = (match.start(), level)
    return best[1] if best else None


def detect_level(text: str) -> Optional[str]:
    return _last_level(text)


def detect_type(text: str) -> Optional[str]:
    hits = {
        name: bool(re.search(rf"\b(?:{pattern})\b", text, re.IGNORECASE))
        for name, pattern in TYPE_PATTERNS.items()
    }
    if hits["mixed"] or (hits["technical"] and hits["behavioral"]):
        return "mixed"
    if hits["behavioral"]:
        return "behavioral"
    if hits["technical"]:
        return "technical"
    return None


def detect_amount(text: str) -> Optional[int]:
    amount = None
    for match in _AMOUNT_RE.finditer(text):
        count = match.group("count").lower()
        amount = int(count) if count.isdigit() else NUMBER_WORDS[count]
    return amount


def normalize_level(value: Optional[str]) -> str:
    """Map free-form seniority ("Junior", "senior", "mid") onto the level vocabulary."""
    if not value:
        return DEFAULT_LEVEL
    if str(value).strip().lower() in SENIOR_TITLES:
        return "senior-level"
    return _last_level(str(value)) or DEFAULT_LEVEL


def normalize_type(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_TYPE
    return detect_type(str(value)) or DEFAULT_TYPE


@dataclass
class DetectedDetails:
    """Interview details found in user utterances; None means not mentioned."""
    role: Optional[str] = None
    level: Optional[str] = None
    type: Optional[str] = None
    techstack: List[str] = field(default_factory=list)
    amount: Optional[int] = None

    def missing(self) -> List[str]:
        slots = []
        if not self.role:
            slots.append("role")
        if not self.level:
            slots.append("level")
        if not self.techstack:
            slots.append("techstack")
        if not self.type:
            slots.append("type")
        if not self.amount:
            slots.append("amount")
        return slots


def detect_details(utterances: Iterable[str]) -> DetectedDetails:
    """Merge detections across utterances; later mentions win for scalar fields."""
    details = DetectedDetails()
    for text in utterances:
        role = detect_role(text)
        if role:
            details.role = role
        level = detect_level(text)
        if level:
            details.level = level
        interview_type = detect_type(text)
        if interview_type:
            details.type = interview_type
        amount = detect_amount(text)
        if amount:
            details.amount = amount
        for tech in detect_technologies(text):
            if tech not in details.techstack:
                details.techstack.append(tech)
    return details
