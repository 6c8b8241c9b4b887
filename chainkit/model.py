#!/usr/bin/env python3
"""
Markov Chain Model
==================
Data model for a word-level bigram Markov chain built from grouped text.

A chain owns a single vocabulary (word text <-> integer id) and a list of
text sources. Each source is a named group of transitions, addressable by any
of its aliases, so one speaker seen under several display names accumulates
into one group.

Layout:
-------
    MarkovChain
      words:   Vocabulary          "hello" <-> 0, "world" <-> 1, ...
      sources: [TextSource]
        names:   ["Sota Sota", "sota"]
        entries: [ChainEntry(prefix=(0, 1), suffix=Terminal(2), ...)]

Word ids are only meaningful relative to the chain that assigned them.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union


# Use a bigram markov chain model
NGRAM_CNT = 2

_TERMINAL_BIT = 1 << 31
_WORD_IDX_MASK = _TERMINAL_BIT - 1


# =============================================================================
# Datestamp
# =============================================================================

@dataclass(frozen=True, order=True)
class Datestamp:
    """Calendar position of a record: year plus ordinal day of that year."""
    year: int = 0
    day: int = 0

    def __post_init__(self):
        if not -(1 << 15) <= self.year < (1 << 15):
            raise ValueError(f"Datestamp year out of range: {self.year}")
        if not 0 <= self.day <= 366:
            raise ValueError(f"Datestamp day out of range: {self.day}")

    @classmethod
    def from_datetime(cls, value: Union[date, datetime]) -> 'Datestamp':
        return cls(year=value.year, day=value.timetuple().tm_yday)

    @classmethod
    def parse(cls, text: str, fmt: str) -> 'Datestamp':
        """Parse a date string with a strptime pattern."""
        return cls.from_datetime(datetime.strptime(text, fmt))

    def in_range(self, start: 'Datestamp', end: 'Datestamp') -> bool:
        """Inclusive on both ends."""
        return start <= self <= end

    def to_list(self) -> list[int]:
        return [self.year, self.day]

    def __str__(self) -> str:
        return f"{self.year}:{self.day:03d}"


# =============================================================================
# Transitions
# =============================================================================

@dataclass(frozen=True)
class ChainSuffix:
    """
    Suffix word id and terminal flag packed into a single 32-bit value.

    The flag lives in the high bit, which caps word ids at 2^31 - 1.
    """
    packed: int

    @classmethod
    def terminal(cls, word_idx: int) -> 'ChainSuffix':
        return cls(_check_word_idx(word_idx) | _TERMINAL_BIT)

    @classmethod
    def nonterminal(cls, word_idx: int) -> 'ChainSuffix':
        return cls(_check_word_idx(word_idx))

    @property
    def word_idx(self) -> int:
        return self.packed & _WORD_IDX_MASK

    @property
    def is_terminal(self) -> bool:
        return bool(self.packed & _TERMINAL_BIT)

    def __repr__(self) -> str:
        kind = "Terminal" if self.is_terminal else "NonTerminal"
        return f"{kind}({self.word_idx})"


def _check_word_idx(word_idx: int) -> int:
    if not 0 <= word_idx <= _WORD_IDX_MASK:
        raise ValueError(f"Word id does not fit in 31 bits: {word_idx}")
    return word_idx


@dataclass(frozen=True)
class ChainEntry:
    """One observed (prefix words) -> suffix word transition."""
    prefix: tuple[int, ...]
    suffix: ChainSuffix
    datestamp: Datestamp = field(default_factory=Datestamp)
    starting: bool = False       # Window opens a new sentence

    def __post_init__(self):
        if len(self.prefix) != NGRAM_CNT:
            raise ValueError(
                f"Prefix must hold {NGRAM_CNT} word ids, got {len(self.prefix)}"
            )
        object.__setattr__(self, 'prefix', tuple(self.prefix))

    @property
    def suffix_word_id(self) -> int:
        return self.suffix.word_idx

    @property
    def is_terminal(self) -> bool:
        return self.suffix.is_terminal

    def to_dict(self) -> dict:
        return {
            'prefix': list(self.prefix),
            'suffix': self.suffix.packed,
            'datestamp': self.datestamp.to_list(),
            'starting': self.starting,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ChainEntry':
        year, day = data['datestamp']
        return cls(
            prefix=tuple(data['prefix']),
            suffix=ChainSuffix(data['suffix']),
            datestamp=Datestamp(year=year, day=day),
            starting=data.get('starting', False),
        )


# =============================================================================
# Vocabulary
# =============================================================================

class Vocabulary:
    """Insertion-ordered interning table: word text <-> stable integer id."""

    def __init__(self, words: Iterable[str] = ()):
        self._words: list[str] = []
        self._ids: dict[str, int] = {}
        for word in words:
            self.intern(word)

    def intern(self, word: str) -> int:
        """Return the id of `word`, assigning the next sequential id if new."""
        idx = self._ids.get(word)
        if idx is not None:
            return idx
        if not word:
            raise ValueError("Cannot intern an empty word")
        idx = len(self._words)
        self._words.append(word)
        self._ids[word] = idx
        return idx

    def resolve(self, idx: int) -> Optional[str]:
        """Word text for `idx`, or None if the id was never assigned."""
        if 0 <= idx < len(self._words):
            return self._words[idx]
        return None

    def get_id(self, word: str) -> Optional[int]:
        return self._ids.get(word)

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[str]:
        return iter(self._words)

    def __contains__(self, word: object) -> bool:
        return word in self._ids

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Vocabulary):
            return self._words == other._words
        return NotImplemented

    def __repr__(self) -> str:
        return f"Vocabulary({self._words!r})"

    def to_list(self) -> list[str]:
        return list(self._words)


# =============================================================================
# Sources and chain
# =============================================================================

@dataclass
class TextSource:
    """Transitions attributed to one author or corpus, known by several aliases."""
    names: list[str] = field(default_factory=list)
    entries: list[ChainEntry] = field(default_factory=list)

    def __post_init__(self):
        # Aliases are unique and keep their first-seen order
        self.names = list(dict.fromkeys(self.names))

    def matches(self, names: Iterable[str]) -> bool:
        """True if any of `names` is one of this source's aliases."""
        return any(name in self.names for name in names)

    def to_dict(self) -> dict:
        return {
            'names': list(self.names),
            'entries': [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TextSource':
        return cls(
            names=list(data['names']),
            entries=[ChainEntry.from_dict(e) for e in data['entries']],
        )


@dataclass
class MarkovChain:
    """Vocabulary plus the sources whose transitions reference it."""
    words: Vocabulary = field(default_factory=Vocabulary)
    sources: list[TextSource] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return sum(len(s.entries) for s in self.sources)

    def sources_by_name(self, names: Iterable[str]) -> list[TextSource]:
        """Sources having at least one alias in `names`."""
        names = list(names)
        return [s for s in self.sources if s.matches(names)]

    # --- ingestion ---

    def append_text(self, text: str, names: Iterable[str],
                    datestamp: Datestamp = None) -> int:
        """Ingest a plain text block. Returns the number of records added."""
        from .append import append_text
        return append_text(self, text, names, datestamp)

    def append_message_dump(self, events) -> int:
        """Ingest a stream of message dump events. Returns records added."""
        from .append import append_message_dump
        return append_message_dump(self, events)

    # --- generation ---

    def generate(self, rng, sources: Iterable[TextSource],
                 min_words: int, max_words: int,
                 date_range: tuple[Datestamp, Datestamp] = None) -> Optional[str]:
        from .generate import ChainGenerator
        return ChainGenerator(self).generate(
            rng, sources, min_words, max_words, date_range=date_range
        )

    def generate_in_date_range(self, rng, sources: Iterable[TextSource],
                               date_range: tuple[Datestamp, Datestamp],
                               min_words: int, max_words: int) -> Optional[str]:
        return self.generate(rng, sources, min_words, max_words,
                             date_range=date_range)

    # --- serialization ---

    def to_dict(self) -> dict:
        return {
            'words': self.words.to_list(),
            'sources': [s.to_dict() for s in self.sources],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'MarkovChain':
        words = list(data.get('words', []))
        if '' in words:
            raise ValueError("Word list contains an empty word")
        if len(set(words)) != len(words):
            raise ValueError("Word list contains duplicate words")
        return cls(
            words=Vocabulary(words),
            sources=[TextSource.from_dict(s) for s in data.get('sources', [])],
        )


# =============================================================================
# PERSISTENCE
# =============================================================================

def save_chain(chain: MarkovChain, filepath: Union[str, Path]):
    """Save a chain to a JSON file"""
    Path(filepath).write_text(
        json.dumps(chain.to_dict(), ensure_ascii=False), encoding='utf-8'
    )


def load_chain(filepath: Union[str, Path]) -> MarkovChain:
    """Load a chain from a JSON file"""
    data = json.loads(Path(filepath).read_text(encoding='utf-8'))
    return MarkovChain.from_dict(data)
