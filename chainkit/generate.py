#!/usr/bin/env python3
"""
Chain Text Generator
====================
Generates word sequences by a random walk over chain transitions.

Each attempt starts from a transition drawn uniformly from the eligible pool,
emits its prefix words and hops to a transition whose first prefix word is the
current suffix word. The attempt succeeds once enough words are collected and
the current transition is terminal, and is abandoned on a dead end or when the
word limit is reached. Attempts are retried up to a fixed budget.

Sampling is flat over all eligible transitions, so a source with more material
is drawn proportionally more often.
"""

import logging
import random
from collections import defaultdict
from typing import Iterable, Optional

from .model import ChainEntry, Datestamp, MarkovChain, TextSource, Vocabulary
from .settings import get_setting

logger = logging.getLogger(__name__)

MAX_TRIES = 20


def collect_edges(sources: Iterable[TextSource],
                  date_range: tuple[Datestamp, Datestamp] = None) -> list[ChainEntry]:
    """Flatten source entries, keeping those inside the inclusive date range."""
    edges = [e for s in sources for e in s.entries]
    if date_range is not None:
        start, end = date_range
        edges = [e for e in edges if e.datestamp.in_range(start, end)]
    return edges


def generate_sequence(rng: random.Random, edges: list[ChainEntry],
                      min_words: int, max_words: int,
                      max_tries: int = MAX_TRIES) -> Optional[list[int]]:
    """
    Random walk over `edges` producing a list of word ids.

    Returns:
        Word ids of the first successful attempt, or None if all attempts
        were abandoned
    """
    if not edges:
        return None

    # Transitions grouped by their first prefix word, in pool order
    by_first_word = defaultdict(list)
    for e in edges:
        by_first_word[e.prefix[0]].append(e)

    generated: list[int] = []
    for attempt in range(1, max_tries + 1):
        edge = rng.choice(edges)
        while True:
            generated.extend(edge.prefix)
            if len(generated) >= min_words and edge.is_terminal:
                generated.append(edge.suffix_word_id)
                logger.debug(f"Generated {len(generated)} words on attempt {attempt}")
                return generated
            if len(generated) >= max_words:
                logger.debug(f"Attempt {attempt} hit the {max_words}-word limit")
                break
            next_edges = by_first_word.get(edge.suffix_word_id)
            if not next_edges:
                logger.debug(f"Attempt {attempt} reached a dead end")
                break
            edge = rng.choice(next_edges)
        generated.clear()

    return None


def seq_to_text(seq: Iterable[int], words: Vocabulary) -> str:
    """Join resolved words with spaces; ids missing from `words` are skipped."""
    resolved = []
    for word_idx in seq:
        word = words.resolve(word_idx)
        if word is None:
            logger.warning(f"Dropping unresolvable word id {word_idx}")
            continue
        resolved.append(word)
    return ' '.join(resolved)


class ChainGenerator:
    """Read-only text generator over a MarkovChain."""

    def __init__(self, chain: MarkovChain, max_tries: int = None):
        self.chain = chain
        if max_tries is None:
            max_tries = get_setting("generation.max_tries", MAX_TRIES)
        self.max_tries = max_tries

    def generate(self,
                 rng: random.Random,
                 sources: Iterable[TextSource],
                 min_words: int,
                 max_words: int,
                 date_range: tuple[Datestamp, Datestamp] = None) -> Optional[str]:
        """
        Generate a single word sequence.

        Args:
            rng: Random source, e.g. random.Random(seed)
            sources: Sources to draw transitions from
            min_words: Minimum number of words before a terminal may end output
            max_words: Word limit at which an attempt is abandoned
            date_range: Optional inclusive (start, end) datestamp filter

        Returns:
            Generated text, or None when there is no eligible material or
            every attempt failed
        """
        if min_words < 0 or max_words < 0:
            raise ValueError("Word bounds must be non-negative")

        edges = collect_edges(sources, date_range)
        if not edges:
            logger.debug("No eligible transitions for generation")
            return None

        seq = generate_sequence(rng, edges, min_words, max_words, self.max_tries)
        if seq is None:
            logger.debug(f"Generation failed after {self.max_tries} attempts")
            return None
        return seq_to_text(seq, self.chain.words)

    def generate_batch(self,
                       rng: random.Random,
                       sources: Iterable[TextSource],
                       count: int,
                       min_words: int,
                       max_words: int,
                       date_range: tuple[Datestamp, Datestamp] = None) -> list[str]:
        """Generate up to `count` sequences, skipping failed requests."""
        sources = list(sources)
        results = []
        for _ in range(count):
            text = self.generate(rng, sources, min_words, max_words, date_range)
            if text is not None:
                results.append(text)
        return results
