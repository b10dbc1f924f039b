from typing import Dict, Iterable, Optional, Protocol, Set
import re


class TriggerClassifier(Protocol):
    """Maps request text to trigger keywords"""

    def classify(self, content: str) -> Set[str]:
        ...


DEFAULT_VOCABULARY: Dict[str, Set[str]] = {
    "code_implementation": {"code", "function", "class", "implement", "method", "bug", "compile"},
    "code_review": {"review", "pr", "diff", "lint"},
    "refactoring": {"refactor", "refactoring", "cleanup", "rename", "extract"},
    "system_design": {"architecture", "design", "structure", "component", "scalability"},
    "architecture_planning": {"roadmap", "plan", "migration", "diagram"},
    "structural_changes": {"restructure", "reorganize", "split", "merge", "module"},
    "feedback": {"feedback", "thanks", "helpful", "wrong", "incorrect"},
    "rating": {"rate", "rating", "rated", "stars", "score"},
    "review": {"review", "reviewed", "reviewing"},
}


class KeywordTriggerClassifier:
    """Keyword overlap classifier over a trigger -> vocabulary map"""

    def __init__(self, vocabulary: Optional[Dict[str, Iterable[str]]] = None, min_overlap: int = 1):
        source = DEFAULT_VOCABULARY if vocabulary is None else vocabulary
        self.vocabulary: Dict[str, Set[str]] = {
            trigger: {word.lower() for word in words}
            for trigger, words in source.items()
        }
        self.min_overlap = min_overlap

    def classify(self, content: str) -> Set[str]:
        """Return every trigger whose vocabulary overlaps the content"""

        words = set(re.findall(r'\w+', (content or "").lower()))
        if not words:
            return set()

        return {
            trigger for trigger, vocabulary in self.vocabulary.items()
            if len(words.intersection(vocabulary)) >= self.min_overlap
        }

    def score(self, content: str) -> Dict[str, float]:
        """Fraction of each trigger's vocabulary present in the content"""

        words = set(re.findall(r'\w+', (content or "").lower()))
        scores = {}
        for trigger, vocabulary in self.vocabulary.items():
            overlap = len(words.intersection(vocabulary))
            scores[trigger] = min(overlap / len(vocabulary), 1.0) if vocabulary else 0.0
        return scores
