"""
Corpus substitution for synthesized values.

A resolver runs an ordered list of strategies against every synthesized value;
the first strategy that applies replaces the value with corpus data, otherwise
the value passes through. A user hook, when given, always runs last.
"""
import base64
import bisect
import logging
import math
import random
import re
from typing import Any, Callable, Dict, List, Optional

from routefuzz.services.constraints import Constraints, Regex
from routefuzz.services.corpus import Corpus

logger = logging.getLogger(__name__)

SKIP = object()

ReplaceHook = Callable[[Any, Dict[str, Any], Constraints], Any]


def nearest_length(lengths: List[int], target: int, low: float, high: float) -> Optional[int]:
    """
    Closest available length to target within [low, high].

    Args:
        lengths: Ascending available lengths
        target: Desired length
        low: Inclusive lower bound
        high: Inclusive upper bound

    Returns:
        The closest length, the smaller one on ties, or None when none is in range
    """
    start = bisect.bisect_left(lengths, low)
    end = bisect.bisect_right(lengths, high)
    best = None
    for length in lengths[start:end]:
        if best is None or abs(length - target) < abs(best - target):
            best = length
    return best


class BinaryFileStrategy:
    """Binary fields receive the raw bytes of a random corpus file."""

    def __init__(self, corpus: Corpus, rng: random.Random):
        self.corpus = corpus
        self.rng = rng

    def __call__(self, value: Any, descriptor: Dict[str, Any], constraints: Constraints) -> Any:
        if constraints.type != "binary" or not self.corpus.file or constraints.valids is not None:
            return SKIP
        name = self.rng.choice(sorted(self.corpus.file))
        return self.corpus.file[name].data


class DataUriStrategy:
    """Data URI strings embed a random corpus file."""

    def __init__(self, corpus: Corpus, rng: random.Random):
        self.corpus = corpus
        self.rng = rng

    def __call__(self, value: Any, descriptor: Dict[str, Any], constraints: Constraints) -> Any:
        if (
            constraints.type != "string"
            or not constraints.has_format("dataUri")
            or not self.corpus.file
            or constraints.valids is not None
        ):
            return SKIP
        entry = self.corpus.file[self.rng.choice(sorted(self.corpus.file))]
        return f"data:{entry.mime};base64,{base64.b64encode(entry.data).decode('ascii')}"


class StringCorpusStrategy:
    """Plain strings are swapped for a corpus line of a length the constraints allow."""

    def __init__(self, corpus: Corpus, rng: random.Random, regex_attempts: int = 20):
        self.corpus = corpus
        self.rng = rng
        self.regex_attempts = regex_attempts

    def __call__(self, value: Any, descriptor: Dict[str, Any], constraints: Constraints) -> Any:
        if (
            constraints.type != "string"
            or not self.corpus.string
            or constraints.valids is not None
            or constraints.blocks_substitution
        ):
            return SKIP

        length = self.target_length(constraints)
        if length is None:
            return SKIP

        bucket = self.corpus.string.get(length)
        if not bucket:
            return SKIP

        if constraints.regex:
            return self._draw_matching(bucket, constraints.regex)
        return self.rng.choice(bucket)

    def target_length(self, constraints: Constraints) -> Optional[int]:
        """
        Pick the corpus bucket length for a descriptor.

        Returns:
            A length, or None when the constraints leave no usable window
        """
        if constraints.length is not None:
            return constraints.length

        min_len, max_len = self.corpus.min_length, self.corpus.max_length
        low, high = min_len, max_len

        if constraints.max is not None:
            high = min(constraints.max, max_len) if constraints.max >= min_len else 0
        if constraints.min is not None:
            low = max(constraints.min, min_len) if constraints.min <= max_len else math.inf

        if high < low:
            return None
        if low == high:
            return int(low)

        length = self.rng.randint(math.ceil(low), math.floor(high))
        if length not in self.corpus.string:
            length = nearest_length(self.corpus.lengths, length, low, high)
        return length

    def _draw_matching(self, bucket: List[str], regex: Regex) -> str:
        try:
            compiled = re.compile(regex.pattern)
        except re.error:
            return self.rng.choice(bucket)

        candidate = None
        for _ in range(self.regex_attempts):
            candidate = self.rng.choice(bucket)
            if (compiled.search(candidate) is not None) != regex.invert:
                return candidate
        logger.debug(f"No corpus entry satisfied {regex.pattern!r} after {self.regex_attempts} draws")
        return candidate


class CorpusResolver:
    """Ordered substitution strategies, first match wins, identity fallback."""

    def __init__(
        self,
        corpus: Optional[Corpus] = None,
        rng: Optional[random.Random] = None,
        regex_attempts: int = 20,
        replace: Optional[ReplaceHook] = None,
    ):
        """
        Initialize resolver.

        Args:
            corpus: Loaded corpus (no substitution when None)
            rng: Random source shared with the synthesizer
            regex_attempts: Draw budget for pattern-constrained strings
            replace: User hook applied to every resolved value
        """
        self.corpus = corpus
        self.rng = rng or random.Random()
        self.replace = replace
        self.strategies = []
        if corpus is not None:
            self.strategies = [
                BinaryFileStrategy(corpus, self.rng),
                DataUriStrategy(corpus, self.rng),
                StringCorpusStrategy(corpus, self.rng, regex_attempts),
            ]

    def __call__(self, value: Any, descriptor: Dict[str, Any], constraints: Constraints) -> Any:
        for strategy in self.strategies:
            result = strategy(value, descriptor, constraints)
            if result is not SKIP:
                value = result
                break

        if self.replace:
            value = self.replace(value, descriptor, constraints)
        return value
