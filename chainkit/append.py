#!/usr/bin/env python3
"""
Chain Ingestion
===============
Feeds text into a MarkovChain.

Two entry points share one window-sliding routine:

- append_text: one block of text under a single source identity and date.
  Only the final window of the text is terminal.
- append_message_dump: a stream of MessageEvents produced by a message dump
  reader. Every message is appended under its author's names and date, and a
  window is terminal when its suffix word closes a sentence.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .model import (
    NGRAM_CNT,
    ChainEntry,
    ChainSuffix,
    Datestamp,
    MarkovChain,
    TextSource,
    Vocabulary,
)
from .settings import get_setting

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%Y.%m.%d %H:%M:%S"
DEFAULT_TERMINAL_CHARS = ".!?"


class MessageDumpError(ValueError):
    """Message dump content that cannot be ingested."""


# =============================================================================
# Message events
# =============================================================================

class MessageEventKind(Enum):
    START = "start"             # Message boundary; depth 0 is a top-level message
    FULL_NAME = "full_name"
    SHORT_NAME = "short_name"
    DATE = "date"
    BODY_PART = "body_part"
    OTHER = "other"


@dataclass(frozen=True)
class MessageEvent:
    """One event from a message dump reader."""
    kind: MessageEventKind
    value: str = ""
    depth: int = 0

    @classmethod
    def start(cls, depth: int = 0) -> 'MessageEvent':
        return cls(MessageEventKind.START, depth=depth)

    @classmethod
    def full_name(cls, name: str) -> 'MessageEvent':
        return cls(MessageEventKind.FULL_NAME, name)

    @classmethod
    def short_name(cls, name: str) -> 'MessageEvent':
        return cls(MessageEventKind.SHORT_NAME, name)

    @classmethod
    def date(cls, text: str) -> 'MessageEvent':
        return cls(MessageEventKind.DATE, text)

    @classmethod
    def body_part(cls, text: str) -> 'MessageEvent':
        return cls(MessageEventKind.BODY_PART, text)


@dataclass
class ExtractedMessage:
    names: list[str] = field(default_factory=list)
    datestamp: Datestamp = field(default_factory=Datestamp)
    body: str = ""


# =============================================================================
# Entry points
# =============================================================================

def append_text(chain: MarkovChain, text: str, names: Iterable[str],
                datestamp: Optional[Datestamp] = None) -> int:
    """
    Append a block of text to the source known by any of `names`.

    Args:
        chain: Chain to extend
        text: Input text, split on spaces and newlines
        names: Alias names of the source
        datestamp: Date attached to every record (defaults to 0:000)

    Returns:
        Number of records added
    """
    if datestamp is None:
        datestamp = Datestamp()
    source = source_by_names(chain.sources, names)
    added = push_text_entries(text, datestamp, source.entries, chain.words,
                              treat_ending_punctuation_as_terminal=False)
    logger.debug(f"Appended {added} records from text to {source.names}")
    return added


def append_message_dump(chain: MarkovChain, events: Iterable[MessageEvent],
                        date_format: str = None) -> int:
    """
    Append every message from a stream of dump events.

    Fields accumulate until the next top-level START event, at which point the
    message is flushed. The last message is flushed when the stream ends.
    Messages with an empty body are skipped.

    Returns:
        Number of records added

    Raises:
        MessageDumpError: If a message date does not match `date_format`
    """
    if date_format is None:
        date_format = get_setting("ingestion.date_format", DEFAULT_DATE_FORMAT)

    added = 0
    messages = 0
    msg = ExtractedMessage()
    for event in events:
        kind = event.kind
        if kind is MessageEventKind.START:
            if event.depth != 0:
                continue
            if msg.body:
                added += append_message(chain, msg)
                messages += 1
            msg = ExtractedMessage()
        elif kind in (MessageEventKind.FULL_NAME, MessageEventKind.SHORT_NAME):
            msg.names.append(event.value)
        elif kind is MessageEventKind.DATE:
            msg.datestamp = parse_message_date(event.value, date_format)
        elif kind is MessageEventKind.BODY_PART:
            msg.body += event.value

    if msg.body:
        added += append_message(chain, msg)
        messages += 1

    logger.debug(f"Appended {added} records from {messages} messages")
    return added


def parse_message_date(text: str, date_format: str = DEFAULT_DATE_FORMAT) -> Datestamp:
    try:
        return Datestamp.parse(text.strip(), date_format)
    except ValueError as e:
        raise MessageDumpError(f"Unparsable message date {text!r}: {e}") from e


def append_message(chain: MarkovChain, message: ExtractedMessage) -> int:
    source = source_by_names(chain.sources, message.names)
    return push_text_entries(message.body, message.datestamp, source.entries,
                             chain.words,
                             treat_ending_punctuation_as_terminal=True)


# =============================================================================
# Shared core
# =============================================================================

def source_by_names(sources: list[TextSource], names: Iterable[str]) -> TextSource:
    """
    Find the first source sharing an alias with `names`, or create one.

    An existing source keeps its alias set unchanged. A new source takes
    exactly `names` as its aliases and is appended to `sources`.
    """
    names = list(dict.fromkeys(names))
    if not names:
        raise ValueError("At least one source name is required")

    for source in sources:
        if source.matches(names):
            return source

    source = TextSource(names=names)
    sources.append(source)
    logger.debug(f"Created source {names}")
    return source


def tokenize(text: str) -> list[str]:
    """Split on spaces and newlines, dropping empty tokens."""
    return [w for w in text.replace('\n', ' ').split(' ') if w]


def push_text_entries(text: str, datestamp: Datestamp, entries: list[ChainEntry],
                      words: Vocabulary,
                      treat_ending_punctuation_as_terminal: bool,
                      terminal_chars: str = None) -> int:
    """
    Slide an (NGRAM_CNT + 1)-word window over `text` and append one record
    per window to `entries`.

    With `treat_ending_punctuation_as_terminal` a window is terminal when its
    suffix word ends with one of `terminal_chars`; otherwise only windows equal
    to the final window of the text are terminal. A window following a
    terminal one (and the first window) is marked as starting.

    Returns:
        Number of records appended
    """
    if terminal_chars is None:
        terminal_chars = get_setting("ingestion.terminal_chars", DEFAULT_TERMINAL_CHARS)
    terminal_chars = tuple(terminal_chars)

    word_indexes = [words.intern(w) for w in tokenize(text)]

    width = NGRAM_CNT + 1
    if len(word_indexes) < width:
        return 0

    last_ngram = word_indexes[-width:]

    starting = True
    for i in range(len(word_indexes) - NGRAM_CNT):
        ngram = word_indexes[i:i + width]
        prefix, suffix_idx = tuple(ngram[:NGRAM_CNT]), ngram[NGRAM_CNT]
        if treat_ending_punctuation_as_terminal:
            terminal = words.resolve(suffix_idx).endswith(terminal_chars)
        else:
            terminal = ngram == last_ngram
        entries.append(ChainEntry(
            prefix=prefix,
            suffix=ChainSuffix.terminal(suffix_idx) if terminal
            else ChainSuffix.nonterminal(suffix_idx),
            datestamp=datestamp,
            starting=starting,
        ))
        starting = terminal

    return len(word_indexes) - NGRAM_CNT
