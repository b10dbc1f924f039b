"""
Pluggable classifiers used by the context store.

These are deliberately shallow keyword heuristics. Callers that have a real
summarizer or entity tagger pass their own callables to ``ContextStore``.

Contracts:
    Summarizer(request, response) -> str
    Extractor(data, request, response) -> None   (mutates ``data`` in place)
    ImportancePredicate(request, response) -> bool
"""

from typing import Callable, List
from collections import Counter
from datetime import datetime
import re

from contextcore.domain.models.context import ContextData
from contextcore.domain.models.records import AgentRequest, AgentResponse

Summarizer = Callable[[AgentRequest, AgentResponse], str]
Extractor = Callable[[ContextData, AgentRequest, AgentResponse], None]
ImportancePredicate = Callable[[AgentRequest, AgentResponse], bool]

SUMMARY_LENGTH = 100
MAX_STATED_PREFERENCES = 10
MAX_TRACKED_ENTITIES = 200
MAX_KNOWLEDGE_ITEMS = 20
RECENT_REQUEST_LIMIT = 5

_PREFERENCE_PATTERN = re.compile(
    r"\bi\s+(?:prefer|like|want|always use|would rather)\s+([^.,;!?\n]{2,80})",
    re.IGNORECASE
)
_STYLE_MARKERS = {
    "concise": re.compile(r"\b(concise|brief|short|terse|tl;?dr)\b", re.IGNORECASE),
    "detailed": re.compile(r"\b(detailed|verbose|in depth|in-depth|thorough)\b", re.IGNORECASE),
}
_LANGUAGES = (
    "python", "typescript", "javascript", "rust", "go", "java", "kotlin",
    "swift", "ruby", "c#", "c++", "sql", "bash",
)
_CODE_BLOCK_PATTERN = re.compile(r"```([\w+#-]*)[ \t]*\n(.*?)```", re.DOTALL)
_CAMEL_CASE_PATTERN = re.compile(r"\b[A-Z][a-z0-9]+(?:[A-Z][a-z0-9]*)+\b")
_CALL_PATTERN = re.compile(r"\b([a-z_][a-z0-9_]{2,})\(")
_URGENCY_PATTERN = re.compile(
    r"\b(error|exception|fail(?:s|ed|ure)?|crash(?:ed|es)?|bug|broken|urgent|asap|critical|emergency)\b",
    re.IGNORECASE
)


def summarize_interaction(request: AgentRequest, response: AgentResponse) -> str:
    """First 100 characters of the response"""

    content = response.content or ""
    if len(content) > SUMMARY_LENGTH:
        return content[:SUMMARY_LENGTH] + "..."
    return content


def detect_preferences(data: ContextData, request: AgentRequest, response: AgentResponse) -> None:
    """Record stated preferences, preferred language and response style"""

    content = request.content or ""

    for style, pattern in _STYLE_MARKERS.items():
        if pattern.search(content):
            data.user_preferences["response_style"] = style

    stated = list(data.user_preferences.get("stated", []))
    for match in _PREFERENCE_PATTERN.finditer(content):
        phrase = match.group(1).strip().lower()
        if phrase in stated:
            stated.remove(phrase)
        stated.append(phrase)

        for language in _LANGUAGES:
            if re.search(rf"(?<![\w#+]){re.escape(language)}(?![\w#+])", phrase):
                data.user_preferences["language"] = language
                break

    if stated:
        data.user_preferences["stated"] = stated[-MAX_STATED_PREFERENCES:]


def tag_knowledge(data: ContextData, request: AgentRequest, response: AgentResponse) -> None:
    """Keep the most recent code snippets from responses in the knowledge base"""

    for index, match in enumerate(_CODE_BLOCK_PATTERN.finditer(response.content or "")):
        language = match.group(1) or "text"
        data.knowledge_base[f"snippet:{response.id}:{index}"] = {
            "language": language.lower(),
            "code": match.group(2),
            "request_ref": request.id,
            "recorded_at": datetime.utcnow().isoformat(),
        }

    # Insertion order is age order; keep the newest entries
    overflow = len(data.knowledge_base) - MAX_KNOWLEDGE_ITEMS
    if overflow > 0:
        for key in list(data.knowledge_base)[:overflow]:
            del data.knowledge_base[key]


def tag_entities(data: ContextData, request: AgentRequest, response: AgentResponse) -> None:
    """Count identifier-like tokens seen in the exchange"""

    counts = Counter(data.entity_recognition)
    for text in (request.content or "", response.content or ""):
        counts.update(_CAMEL_CASE_PATTERN.findall(text))
        counts.update(_CALL_PATTERN.findall(text))

    if len(counts) > MAX_TRACKED_ENTITIES:
        counts = Counter(dict(counts.most_common(MAX_TRACKED_ENTITIES)))

    data.entity_recognition = dict(counts)


def track_recent_requests(data: ContextData, request: AgentRequest, response: AgentResponse) -> None:
    """Keep the last few request texts for repeat detection"""

    if request.content:
        data.recent_requests = (data.recent_requests + [request.content])[-RECENT_REQUEST_LIMIT:]


def has_urgency_markers(request: AgentRequest, response: AgentResponse) -> bool:
    """Failure or urgency wording in either side of the exchange"""

    return bool(
        _URGENCY_PATTERN.search(request.content or "")
        or _URGENCY_PATTERN.search(response.content or "")
    )


def build_summary(data: ContextData) -> str:
    """Short human readable digest stored in ``metadata.summary``"""

    parts = [f"{len(data.interactions)} interactions"]

    if data.user_preferences:
        parts.append("preferences: " + ", ".join(sorted(data.user_preferences)))

    if data.entity_recognition:
        top = Counter(data.entity_recognition).most_common(3)
        parts.append("entities: " + ", ".join(name for name, _ in top))

    if data.knowledge_base:
        parts.append(f"{len(data.knowledge_base)} knowledge items")

    if data.feedback:
        parts.append(f"{len(data.feedback)} feedback entries")

    return "; ".join(parts)


DEFAULT_EXTRACTORS: List[Extractor] = [detect_preferences, tag_knowledge, tag_entities, track_recent_requests]
