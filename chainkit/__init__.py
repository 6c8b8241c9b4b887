#!/usr/bin/env python3
"""
ChainKit - Word-level Markov Chain Text Generator
=================================================

Builds a bigram Markov chain from grouped text (chat logs or plain
documents) and generates text "in the voice of" a source, optionally
limited to a word count and a date range.

Quick Start
-----------
    import random
    from chainkit import MarkovChain, Datestamp

    chain = MarkovChain()
    chain.append_text(text, ["angus", "sol onset"], Datestamp(2020, 1))

    sources = chain.sources_by_name(["angus"])
    print(chain.generate(random.Random(1), sources, 5, 20))

Modules
-------
    chainkit.model    - Vocabulary, transitions, sources, persistence
    chainkit.append   - Ingestion of text blocks and message dumps
    chainkit.generate - Random walk generation
    chainkit.settings - YAML settings

CLI Usage
---------
    python -m chainkit build chain.json --text notes.txt --name angus
    python -m chainkit generate chain.json --source angus -n 5
    python -m chainkit sources chain.json
"""

__version__ = "0.1.0"
__author__ = "ChainKit"

from .model import (
    NGRAM_CNT,
    ChainEntry,
    ChainSuffix,
    Datestamp,
    MarkovChain,
    TextSource,
    Vocabulary,
    load_chain,
    save_chain,
)
from .append import (
    MessageDumpError,
    MessageEvent,
    MessageEventKind,
    append_message_dump,
    append_text,
    source_by_names,
)
from .generate import (
    MAX_TRIES,
    ChainGenerator,
)

__all__ = [
    '__version__',
    # Model
    'NGRAM_CNT',
    'ChainEntry',
    'ChainSuffix',
    'Datestamp',
    'MarkovChain',
    'TextSource',
    'Vocabulary',
    'load_chain',
    'save_chain',
    # Ingestion
    'MessageDumpError',
    'MessageEvent',
    'MessageEventKind',
    'append_message_dump',
    'append_text',
    'source_by_names',
    # Generation
    'MAX_TRIES',
    'ChainGenerator',
]
