"""
Topic Keyword Index

Static curriculum vocabulary: subject -> topic -> keywords.

Lookup rules:
- Subject must match a known key exactly (case-insensitive)
- Topic matches by substring in either direction, first match in
  declaration order wins
- No topic match -> union of all keywords for the subject (broad fallback)
- Unknown subject -> empty keyword set (soft fail, everything scores off-topic)
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from edupulse_monitor.config import MonitorConfig

logger = logging.getLogger(__name__)


# Curriculum topics database (extend by adding entries, scoring is unaffected)
CURRICULUM_TOPICS: Dict[str, Dict[str, List[str]]] = {
    "mathematics": {
        "quadratic equations": [
            "quadratic", "equation", "ax squared", "bx", "polynomial", "degree 2",
            "factorization", "roots", "discriminant", "formula", "parabola",
            "coefficient", "variable", "solution", "factor", "completing the square",
        ],
        "linear equations": [
            "linear", "straight line", "slope", "intercept", "y equals mx plus b",
            "gradient", "coordinate", "axis", "graph", "variable", "constant",
        ],
        "trigonometry": [
            "sine", "cosine", "tangent", "angle", "triangle", "hypotenuse",
            "opposite", "adjacent", "degree", "radian", "pythagoras", "ratio",
        ],
        "algebra": [
            "variable", "expression", "equation", "polynomial", "factor",
            "simplify", "solve", "substitute", "coefficient", "term",
        ],
        "geometry": [
            "angle", "triangle", "circle", "square", "rectangle", "polygon",
            "area", "perimeter", "volume", "congruent", "similar", "parallel",
        ],
    },
    "science": {
        "photosynthesis": [
            "chlorophyll", "sunlight", "carbon dioxide", "oxygen", "glucose",
            "plant", "leaf", "chloroplast", "energy", "water", "stoma",
        ],
        "newton laws": [
            "force", "mass", "acceleration", "inertia", "motion", "action",
            "reaction", "velocity", "momentum", "friction", "newton",
        ],
        "atoms": [
            "electron", "proton", "neutron", "nucleus", "orbit", "element",
            "atomic number", "mass number", "isotope", "ion", "charge",
        ],
    },
    "english": {
        "grammar": [
            "noun", "verb", "adjective", "adverb", "pronoun", "preposition",
            "conjunction", "sentence", "clause", "phrase", "tense", "subject", "object",
        ],
        "literature": [
            "poem", "story", "character", "plot", "theme", "metaphor",
            "simile", "imagery", "author", "narrative", "setting",
        ],
    },
    "history": {
        "independence": [
            "freedom", "british", "gandhi", "nehru", "partition", "struggle",
            "movement", "salt march", "quit india", "independence", "colony",
        ],
        "ancient india": [
            "indus valley", "harappa", "mohenjo daro", "vedic", "maurya",
            "gupta", "ashoka", "civilization", "empire", "dynasty",
        ],
    },
}


def _dedupe(keywords: Iterable[str]) -> Tuple[str, ...]:
    seen = {}
    for keyword in keywords:
        normalized = keyword.strip().lower()
        if normalized:
            seen.setdefault(normalized, None)
    return tuple(seen)


class TopicVocabulary:
    """
    Immutable keyword index built from a nested subject/topic mapping.

    Keywords are kept as ordered, de-duplicated tuples so that coverage
    suggestions and ambiguous topic matches are deterministic.
    """

    def __init__(self, topics: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None):
        source = CURRICULUM_TOPICS if topics is None else topics
        frozen = {}
        for subject, subject_topics in source.items():
            frozen[subject.strip().lower()] = MappingProxyType({
                topic.strip().lower(): _dedupe(keywords)
                for topic, keywords in subject_topics.items()
            })
        self._topics = MappingProxyType(frozen)

    @classmethod
    def from_json_file(cls, path: str) -> "TopicVocabulary":
        """Load a curriculum from a JSON file shaped like CURRICULUM_TOPICS."""
        with open(Path(path), encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Curriculum file {path} must contain a JSON object")
        logger.info(f"📚 [TopicVocabulary] Loaded {len(data)} subjects from {path}")
        return cls(data)

    @classmethod
    def from_env(cls, config: Optional[MonitorConfig] = None) -> "TopicVocabulary":
        """Use CURRICULUM_TOPICS_FILE if set, otherwise the built-in curriculum."""
        config = config or MonitorConfig.from_env()
        if config.curriculum_topics_file:
            return cls.from_json_file(config.curriculum_topics_file)
        return cls()

    def subjects(self) -> List[str]:
        return list(self._topics)

    def topics(self, subject: str) -> List[str]:
        return list(self._topics.get(subject.strip().lower(), {}))

    def lookup(self, subject: str, topic: str) -> Tuple[str, ...]:
        """
        Get the keyword set used to score a session.

        Args:
            subject: Subject name (exact, case-insensitive)
            topic: Topic name (substring match in either direction)

        Returns:
            Ordered tuple of keywords (empty when the subject is unknown)
        """
        subject_topics = self._topics.get((subject or "").strip().lower())
        if subject_topics is None:
            logger.warning(f"⚠️ [TopicVocabulary] Unknown subject '{subject}', using empty keyword set")
            return ()

        requested = (topic or "").strip().lower()
        for name, keywords in subject_topics.items():
            if name in requested or requested in name:
                return keywords

        logger.info(f"📚 [TopicVocabulary] No topic match for '{topic}' in '{subject}', using all subject keywords")
        return _dedupe(kw for keywords in subject_topics.values() for kw in keywords)

    def with_topic(self, subject: str, topic: str, keywords: Iterable[str]) -> "TopicVocabulary":
        """Return a copy with one subject/topic entry added or replaced."""
        merged: Dict[str, Dict[str, Iterable[str]]] = {
            name: dict(subject_topics) for name, subject_topics in self._topics.items()
        }
        merged.setdefault(subject.strip().lower(), {})[topic.strip().lower()] = list(keywords)
        return TopicVocabulary(merged)

    def to_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {
            subject: {topic: list(keywords) for topic, keywords in subject_topics.items()}
            for subject, subject_topics in self._topics.items()
        }
