"""
Tests for Chain Generation
==========================
Tests for the random walk generator in chainkit/generate.py.
"""

import pytest
import random
import sys
from pathlib import Path

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chainkit.generate import (
    MAX_TRIES,
    ChainGenerator,
    collect_edges,
    generate_sequence,
    seq_to_text,
)
from chainkit.model import (
    ChainEntry,
    ChainSuffix,
    Datestamp,
    MarkovChain,
    TextSource,
    Vocabulary,
)

STAMP = Datestamp(year=2070, day=360)
EXPECTED = "сегодня у меня депрессия с собаками"


class FirstChoice:
    """Random source that always picks the first candidate."""

    def __init__(self):
        self.calls = 0

    def choice(self, seq):
        self.calls += 1
        return seq[0]


@pytest.fixture
def determined_chain():
    """Three records that chain into one sentence; id 6 never resolves."""
    chain = MarkovChain()
    for word in ["сегодня", "у", "меня", "депрессия", "с", "собаками"]:
        chain.words.intern(word)

    chain.sources.append(TextSource(
        names=["дана"],
        entries=[
            ChainEntry((0, 1), ChainSuffix.nonterminal(2), STAMP),
            ChainEntry((4, 5), ChainSuffix.terminal(6), STAMP),
        ],
    ))
    chain.sources.append(TextSource(
        names=["джилл"],
        entries=[ChainEntry((2, 3), ChainSuffix.nonterminal(4), STAMP)],
    ))
    return chain


@pytest.fixture
def corpus_chain():
    """A chain with enough material for random generation."""
    chain = MarkovChain()
    texts = [
        ("the cat sat on the mat and the dog sat on the rug.", Datestamp(2018, 10)),
        ("the dog ran to the park and the cat sat on the fence.", Datestamp(2018, 21)),
        ("a bird sat on the fence and the cat ran to the mat.", Datestamp(2019, 5)),
    ]
    for text, stamp in texts:
        chain.append_text(text, ["writer"], stamp)
    chain.append_text("on the mat the cat sat on the rug and slept.", ["other"],
                      Datestamp(2019, 6))
    return chain


class TestDeterminedGeneration:
    """Generation over a fully determined record set."""

    def test_determined_generation(self, determined_chain):
        """Unresolvable suffix ids are dropped from the output."""
        generated = determined_chain.generate(
            FirstChoice(), determined_chain.sources, 5, 6
        )
        assert generated == EXPECTED

    def test_seeded_generation(self, determined_chain):
        """The only successful walk yields the expected sentence."""
        # Two of three start edges dead-end; a wide budget makes success certain
        generator = ChainGenerator(determined_chain, max_tries=200)
        for seed in (0, 1, 42):
            generated = generator.generate(
                random.Random(seed), determined_chain.sources, 5, 6
            )
            assert generated == EXPECTED

    def test_sources_subset(self, determined_chain):
        """Without the bridging record no walk can succeed."""
        generated = determined_chain.generate(
            FirstChoice(), determined_chain.sources_by_name(["дана"]), 5, 6
        )
        assert generated is None

    def test_max_words_too_small(self, determined_chain):
        """An attempt is abandoned once the word limit is reached."""
        generated = determined_chain.generate(
            FirstChoice(), determined_chain.sources, 5, 5
        )
        assert generated == EXPECTED
        generated = determined_chain.generate(
            FirstChoice(), determined_chain.sources, 4, 4
        )
        assert generated is None

    def test_retry_budget(self, determined_chain):
        """Every failed attempt draws a fresh start edge, up to MAX_TRIES."""
        rng = FirstChoice()
        generator = ChainGenerator(determined_chain, max_tries=MAX_TRIES)
        assert generator.generate(rng, determined_chain.sources, 4, 4) is None
        # First draw plus one hop per attempt before hitting the limit
        assert rng.calls == MAX_TRIES * 2

    def test_max_tries_from_settings(self, determined_chain):
        assert ChainGenerator(determined_chain).max_tries == MAX_TRIES == 20


class TestDateRange:
    """Tests for date filtered generation."""

    def test_range_excluding_everything(self, determined_chain):
        generated = determined_chain.generate_in_date_range(
            FirstChoice(), determined_chain.sources,
            (Datestamp(2018, 10), Datestamp(2018, 21)), 5, 6,
        )
        assert generated is None

    def test_range_covering_everything(self, determined_chain):
        generated = determined_chain.generate_in_date_range(
            FirstChoice(), determined_chain.sources,
            (STAMP, STAMP), 5, 6,
        )
        assert generated == EXPECTED

    def test_range_matches_unfiltered(self, corpus_chain):
        """A range covering every record behaves like no filter."""
        full_range = (Datestamp(2000, 0), Datestamp(2100, 366))
        for seed in range(10):
            unfiltered = corpus_chain.generate(
                random.Random(seed), corpus_chain.sources, 4, 12
            )
            filtered = corpus_chain.generate(
                random.Random(seed), corpus_chain.sources, 4, 12,
                date_range=full_range,
            )
            assert filtered == unfiltered

    def test_collect_edges_inclusive(self, corpus_chain):
        edges = collect_edges(
            corpus_chain.sources, (Datestamp(2018, 21), Datestamp(2019, 5))
        )
        assert edges
        assert {e.datestamp for e in edges} == {Datestamp(2018, 21), Datestamp(2019, 5)}


class TestRandomGeneration:
    """Property checks over a small corpus."""

    def test_deterministic_with_seed(self, corpus_chain):
        first = corpus_chain.generate(random.Random(7), corpus_chain.sources, 4, 12)
        second = corpus_chain.generate(random.Random(7), corpus_chain.sources, 4, 12)
        assert first == second

    def test_word_bounds(self, corpus_chain):
        """Successful output has at least min_words words."""
        min_words, max_words = 6, 14
        for seed in range(30):
            generated = corpus_chain.generate(
                random.Random(seed), corpus_chain.sources, min_words, max_words
            )
            if generated is None:
                continue
            count = len(generated.split(' '))
            assert count >= min_words
            # The limit is checked after each prefix, so output can overshoot it
            # by at most one prefix and the final suffix word
            assert count <= max_words + 2

    def test_output_words_from_sources(self, corpus_chain):
        sources = corpus_chain.sources_by_name(["other"])
        allowed = set("on the mat cat sat rug and slept.".split())
        for seed in range(10):
            generated = corpus_chain.generate(random.Random(seed), sources, 3, 10)
            if generated is not None:
                assert set(generated.split(' ')) <= allowed

    def test_ends_with_terminal_word(self, corpus_chain):
        terminal_words = {"rug.", "fence.", "mat.", "slept."}
        for seed in range(10):
            generated = corpus_chain.generate(
                random.Random(seed), corpus_chain.sources, 3, 30
            )
            if generated is not None:
                assert generated.split(' ')[-1] in terminal_words

    def test_batch(self, corpus_chain):
        generator = ChainGenerator(corpus_chain)
        results = generator.generate_batch(
            random.Random(3), corpus_chain.sources, 5, 3, 30
        )
        assert len(results) <= 5
        assert all(isinstance(r, str) and r for r in results)


class TestEdgeCases:
    """Empty pools and argument checks."""

    def test_no_sources(self, determined_chain):
        assert determined_chain.generate(random.Random(1), [], 1, 10) is None

    def test_empty_source(self):
        chain = MarkovChain()
        chain.append_text("too short", ["src"])
        assert chain.generate(random.Random(1), chain.sources, 1, 10) is None

    def test_min_above_max_even_limit(self):
        """Bounds the walk cannot satisfy exhaust the retries."""
        chain = MarkovChain()
        chain.append_text("a b c d e f g", ["s"])
        assert chain.generate(FirstChoice(), chain.sources, 6, 4) is None

    def test_min_above_max_can_succeed(self):
        """The limit is checked per prefix, so a terminal edge can land past it."""
        chain = MarkovChain()
        chain.append_text("a b c d e f g", ["s"])
        assert chain.generate(FirstChoice(), chain.sources, 6, 5) == "a b c d e f g"
        assert chain.generate(random.Random(0), chain.sources, 6, 5) in (None, "a b c d e f g")

    def test_negative_bounds(self, determined_chain):
        with pytest.raises(ValueError):
            determined_chain.generate(random.Random(1), determined_chain.sources, -1, 6)

    def test_generate_sequence_empty(self):
        assert generate_sequence(random.Random(1), [], 1, 5) is None

    def test_seq_to_text_skips_unknown(self):
        words = Vocabulary(["a", "b"])
        assert seq_to_text([0, 5, 1, 9], words) == "a b"
        assert seq_to_text([], words) == ""
