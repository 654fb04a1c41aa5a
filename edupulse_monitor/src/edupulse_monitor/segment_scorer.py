"""
Segment Scorer

Keyword-density scoring for one finalized transcript segment.

Algorithm:
- Lower-case, whitespace tokenize
- A token matches if it is a keyword, or shares a 4-character prefix
  with one (token[:4] in keyword, or keyword[:4] in token)
- score = min(100, matches / max(words * 0.3, 1) * 100)
- On-topic if score >= 30 or at least 2 matches
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable


@dataclass(frozen=True)
class SegmentScore:
    """Scoring result for a single segment."""
    score: float  # 0-100
    is_on_topic: bool
    matched_keywords: FrozenSet[str]
    match_count: int
    word_count: int

    @property
    def is_off_topic_instance(self) -> bool:
        # Short acknowledgements ("okay, next one") are not penalized
        return not self.is_on_topic and self.word_count > SegmentScorer.OFF_TOPIC_MIN_WORDS


class SegmentScorer:
    """Pure keyword-density scorer."""

    EXPECTED_KEYWORD_DENSITY = 0.3
    ON_TOPIC_SCORE_THRESHOLD = 30
    ON_TOPIC_MIN_MATCHES = 2
    OFF_TOPIC_MIN_WORDS = 5
    PREFIX_LENGTH = 4

    def score(self, text: str, keywords: Iterable[str]) -> SegmentScore:
        """
        Score a text segment against a keyword set.

        Args:
            text: Finalized transcript chunk
            keywords: Topic keywords (lower-case)

        Returns:
            SegmentScore with relevance score and on/off-topic classification
        """
        words = (text or "").lower().split()
        keyword_set = frozenset(keywords)
        total_words = len(words)

        match_count = 0
        matched = set()
        if keyword_set:
            for word in words:
                if word in keyword_set or self._is_related_word(word, keyword_set):
                    match_count += 1
                    matched.add(word)

        if total_words > 0:
            raw_score = (match_count / max(total_words * self.EXPECTED_KEYWORD_DENSITY, 1)) * 100
        else:
            raw_score = 0.0

        is_on_topic = raw_score >= self.ON_TOPIC_SCORE_THRESHOLD or match_count >= self.ON_TOPIC_MIN_MATCHES

        return SegmentScore(
            score=min(raw_score, 100.0),
            is_on_topic=is_on_topic,
            matched_keywords=frozenset(matched),
            match_count=match_count,
            word_count=total_words,
        )

    def _is_related_word(self, word: str, keywords: Iterable[str]) -> bool:
        """
        Fuzzy prefix match tolerating plurals and stems.

        Short words produce false positives: "a" is contained in most keywords.
        """
        word_prefix = word[:self.PREFIX_LENGTH]
        return any(
            word_prefix in keyword or keyword[:self.PREFIX_LENGTH] in word
            for keyword in keywords
        )
