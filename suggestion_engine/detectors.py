"""
Rule-Based Detectors - Demonetization words and intentional slang.

Components:
- detect_demonetization_words(): word list matched with common inflections
  (plurals, past tense, gerunds, y -> ies, doubled final consonant)
- fallback_alternatives(): industry / conservative / creative replacements
- detect_slang(): slang database with a context-driven confidence score
- filter_protected(): drops grammar/spelling/style records that would
  "correct" protected slang, depending on the target formality

Every detector returns plain offsets into the text it was given; turning
them into SuggestionRecord objects happens in demonetization_records() and
slang_records() so they go through the same validation as remote records.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from .locator import DEFAULT_CONTEXT_RADIUS, get_context, locate
from .models import Formality, SuggestionRecord, SuggestionType, new_suggestion_id

logger = logging.getLogger(__name__)


# =============================================================================
# WORD LISTS
# =============================================================================

DEMONETIZATION_WORDS: Tuple[str, ...] = (
    # Death-related terms
    "dead", "die", "death", "dying", "died", "kill", "killed", "killing", "killer", "murder", "murdered",
    "murderer", "suicide", "suicidal", "assassinate", "execution", "executed", "slaughter", "massacre",
    "genocide",
    # Violence-related terms
    "violence", "violent", "abuse", "abusive", "assault", "attack", "attacking", "attacked", "fight",
    "fighting", "punch", "punching", "hit", "hitting", "beat", "beating", "torture", "tortured", "harm",
    "harmful", "hurt", "hurting", "wound", "wounded", "injury", "injured", "blood", "bloody", "bleeding",
    # Weapons
    "gun", "guns", "weapon", "weapons", "knife", "knives", "sword", "bomb", "bombs", "explosive",
    "explosives", "bullet", "bullets", "ammunition", "pistol", "rifle", "shotgun", "firearm", "firearms",
    # Mental health sensitive terms
    "depression", "depressed", "anxiety", "panic", "mental illness", "psycho", "crazy", "insane", "mad",
    "bipolar", "schizophrenia", "trauma", "traumatic", "ptsd",
    # Substance-related
    "drug", "drugs", "cocaine", "heroin", "marijuana", "weed", "alcohol", "drunk", "addiction", "addicted",
    "overdose", "high", "smoking", "cigarette", "cigarettes", "tobacco", "vape", "vaping",
    # Sexual content
    "sex", "sexual", "porn", "pornography", "nude", "naked", "strip", "stripper", "prostitute",
    "prostitution", "rape", "raped", "molest", "molestation", "pedophile", "incest",
    # Hate speech and discrimination
    "hate", "hatred", "racist", "racism", "discrimination", "discriminate", "nazi", "fascist", "terrorist",
    "terrorism", "extremist", "radical", "supremacist",
    # Disaster/tragedy terms
    "disaster", "tragedy", "tragic", "catastrophe", "crisis", "pandemic", "epidemic", "war", "warfare",
    "conflict", "shooting", "shooter", "explosion", "crash", "accident", "emergency",
    # Other sensitive terms
    "controversial", "banned", "illegal", "crime", "criminal", "arrest", "arrested", "prison", "jail",
    "investigation", "scandal", "corrupt", "corruption", "fraud", "scam", "fake", "hoax",
)

# word -> (industry, conservative, creative)
FALLBACK_ALTERNATIVES: Dict[str, Tuple[str, str, str]] = {
    "dead": ("unalived", "passed away", "no longer with us"),
    "die": ("unalive", "pass away", "meet their end"),
    "kill": ("unalive", "eliminate", "take out"),
    "killed": ("unalived", "eliminated", "taken out"),
    "murder": ("unalive", "eliminate", "take out"),
    "fight": ("scuffle", "conflict", "tussle"),
    "violence": ("conflict", "aggression", "intensity"),
    "attack": ("confront", "challenge", "engage"),
    "gun": ("pew pew", "firearm", "blaster"),
    "weapon": ("tool", "instrument", "device"),
    "drug": ("substance", "medication", "compound"),
    "alcohol": ("adult beverage", "beverage", "social lubricant"),
}

DEMONETIZATION_MESSAGE = (
    "This word may cause demonetization on content platforms. Consider using a safer alternative."
)

SLANG_DATABASE: Tuple[str, ...] = tuple(dict.fromkeys((
    # Fashion and appearance
    "fire", "lit", "drip", "fit", "slay", "serve", "lewk", "ootd", "periodt", "no cap",
    # General positive
    "dope", "sick", "tight", "fresh", "clean", "crisp", "smooth", "solid", "legit", "mad",
    "hella", "lowkey", "highkey", "deadass", "fr", "fam", "bruh", "bro", "sis", "bestie",
    # Internet/social media
    "stan", "ship", "vibe", "mood", "same", "bet", "say less", "facts", "cap", "slaps",
    "hits different", "main character", "side character", "npc", "based", "cringe",
    # Gen Z expressions
    "bussin", "sheesh", "and i oop", "sksksk", "vsco", "ok boomer",
    "cheugy", "snatched", "understood the assignment", "it's giving", "rent free",
    # Music/culture
    "bop", "banger", "goes hard", "fire track", "that's my jam", "vibes",
    "lowfi", "mid", "trash", "whack", "basic", "extra", "bougie", "boujee",
    # Reactions
    "oop", "tea", "spill", "drag", "roast", "ratio", "rip", "ded",
    "i'm deceased", "i can't", "not me", "why am i", "pls", "omg", "smh",
)))

SLANG_CONTEXT_INDICATORS: Tuple[str, ...] = (
    "instagram", "tiktok", "snapchat", "twitter", "youtube", "social media",
    "post", "story", "reel", "video", "content", "influencer", "creator",
    "outfit", "fashion", "style", "look", "aesthetic", "vibe", "mood",
    "trend", "trendy", "fashionable", "stylish", "teen", "teenager", "young",
)

HIGH_CONFIDENCE_SLANG = frozenset({"fire", "lit", "slaps", "bussin", "no cap", "deadass"})

SLANG_MESSAGE = "This slang expression is recognized as intentional and protected from grammar corrections."

BASE_SLANG_CONFIDENCE = 0.5
INDICATOR_BONUS = 0.1
HIGH_CONFIDENCE_BONUS = 0.2
MULTI_SLANG_BONUS = 0.1
MULTI_SLANG_MIN_COUNT = 3
SLANG_INCLUDE_THRESHOLD = 0.7

# Slang confidence above which overlapping corrections are dropped; formal never protects
PROTECTION_THRESHOLDS: Dict[Formality, float] = {
    Formality.CASUAL: 0.6,
    Formality.BALANCED: 0.8,
}

PROTECTABLE_TYPES = frozenset({SuggestionType.GRAMMAR, SuggestionType.SPELLING, SuggestionType.STYLE})


@dataclass
class DetectedWord:
    """A detector hit in the scanned text."""

    word: str
    start: int
    end: int
    confidence: Optional[float] = None
    context: str = ""

    def overlaps(self, start: int, end: int) -> bool:
        return self.start < end and start < self.end


def _first_wins(hits: Iterable[DetectedWord]) -> List[DetectedWord]:
    """Sort by position and drop hits overlapping an earlier kept hit."""
    kept: List[DetectedWord] = []
    for hit in sorted(hits, key=lambda h: h.start):
        if kept and hit.start < kept[-1].end:
            continue
        kept.append(hit)
    return kept


# =============================================================================
# DEMONETIZATION
# =============================================================================


def _inflections(word: str) -> List[str]:
    forms = [word, f"{word}s", f"{word}es", f"{word}ed", f"{word}d", f"{word}ing", f"{word}er", f"{word}ers"]
    if word.endswith("y"):
        forms.append(f"{word[:-1]}ies")
    if word.endswith("e"):
        forms.extend([f"{word[:-1]}ing", f"{word[:-1]}ed"])
    # Short consonant-vowel-consonant endings double the last letter (hit -> hitting)
    if (
        len(word) >= 3
        and word[-1] in "bcdfghjklmnpqrstvwxyz"
        and word[-2] in "aeiou"
        and word[-3] not in "aeiou"
    ):
        forms.extend([f"{word}{word[-1]}ing", f"{word}{word[-1]}ed"])
    return forms


@lru_cache(maxsize=None)
def _demonetization_pattern(word: str) -> Pattern[str]:
    alternation = "|".join(re.escape(form) for form in _inflections(word))
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


def detect_demonetization_words(text: str) -> List[DetectedWord]:
    """
    Find demonetization-risk words and their inflections.

    Matching is case-insensitive; the returned word keeps the original case.
    When matches overlap, the first one in text order wins.
    """
    hits: List[DetectedWord] = []
    for word in DEMONETIZATION_WORDS:
        for match in _demonetization_pattern(word).finditer(text):
            if any(h.start <= match.start() < h.end for h in hits):
                continue
            hits.append(DetectedWord(word=match.group(0), start=match.start(), end=match.end()))
    return _first_wins(hits)


def fallback_alternatives(word: str) -> List[str]:
    """Industry, conservative and creative replacements for a flagged word."""
    known = FALLBACK_ALTERNATIVES.get(word.lower())
    if known:
        return list(known)
    return [f"[{word}]", f"{word} (edited)", f"*{word}*"]


def demonetization_records(text: str, radius: int = DEFAULT_CONTEXT_RADIUS) -> List[SuggestionRecord]:
    """Demonetization hits as wire records with fallback alternatives."""
    records = []
    for hit in detect_demonetization_words(text):
        records.append(
            SuggestionRecord(
                id=new_suggestion_id("demonetization"),
                text=hit.word,
                start=hit.start,
                end=hit.end,
                message=DEMONETIZATION_MESSAGE,
                type=SuggestionType.DEMONETIZATION.value,
                alternatives=fallback_alternatives(hit.word),
                flagged_word=hit.word,
                context=get_context(text, hit.start, hit.end, radius),
            )
        )
    return records


# =============================================================================
# SLANG
# =============================================================================


@lru_cache(maxsize=None)
def _slang_pattern(slang: str) -> Pattern[str]:
    return re.compile(rf"\b{re.escape(slang)}\b", re.IGNORECASE)


def count_slang(text: str) -> int:
    """Number of distinct slang entries used as whole words in ``text``."""
    return sum(1 for slang in SLANG_DATABASE if _slang_pattern(slang).search(text))


def slang_confidence(slang: str, context: str, full_text: str, slang_count: Optional[int] = None) -> float:
    """
    Rule-based likelihood that a slang hit is intentional.

    Args:
        slang: Database entry that matched
        context: Window around the hit
        full_text: Whole document text
        slang_count: Precomputed count_slang(full_text)

    Returns:
        Confidence in [0, 1], rounded to two decimals
    """
    confidence = BASE_SLANG_CONFIDENCE
    lower_context = context.lower()
    lower_text = full_text.lower()

    for indicator in SLANG_CONTEXT_INDICATORS:
        if indicator in lower_context or indicator in lower_text:
            confidence += INDICATOR_BONUS

    if slang.lower() in HIGH_CONFIDENCE_SLANG:
        confidence += HIGH_CONFIDENCE_BONUS

    if slang_count is None:
        slang_count = count_slang(full_text)
    if slang_count >= MULTI_SLANG_MIN_COUNT:
        confidence += MULTI_SLANG_BONUS

    return round(min(confidence, 1.0), 2)


def detect_slang(
    text: str,
    radius: int = DEFAULT_CONTEXT_RADIUS,
    threshold: float = SLANG_INCLUDE_THRESHOLD,
) -> List[DetectedWord]:
    """
    Find slang the writer most likely used on purpose.

    Only hits whose confidence exceeds ``threshold`` are returned, sorted by
    position with overlaps resolved in favor of the earlier hit.
    """
    slang_count = count_slang(text)
    hits: List[DetectedWord] = []
    for slang in SLANG_DATABASE:
        for match in _slang_pattern(slang).finditer(text):
            context = get_context(text, match.start(), match.end(), radius)
            confidence = slang_confidence(slang, context, text, slang_count)
            if confidence <= threshold:
                continue
            hits.append(
                DetectedWord(
                    word=match.group(0),
                    start=match.start(),
                    end=match.end(),
                    confidence=confidence,
                    context=context,
                )
            )
    return _first_wins(hits)


def slang_records(text: str, radius: int = DEFAULT_CONTEXT_RADIUS) -> List[SuggestionRecord]:
    """Protected slang as informational wire records (no alternatives)."""
    return [
        SuggestionRecord(
            id=new_suggestion_id("slang-protected"),
            text=hit.word,
            start=hit.start,
            end=hit.end,
            message=SLANG_MESSAGE,
            type=SuggestionType.SLANG_PROTECTED.value,
            alternatives=[],
            confidence=hit.confidence,
            confidence_source="Rules only",
            reasoning="Rule-based detection",
            is_intentional=True,
        )
        for hit in detect_slang(text, radius)
    ]


# =============================================================================
# PROTECTION FILTER
# =============================================================================


def should_protect(start: int, end: int, slang: Iterable[DetectedWord], formality: Formality) -> bool:
    """True when a correction over [start, end) would rewrite protected slang."""
    threshold = PROTECTION_THRESHOLDS.get(Formality(formality))
    if threshold is None:
        return False
    overlapping = next((hit for hit in slang if hit.overlaps(start, end)), None)
    if overlapping is None or overlapping.confidence is None:
        return False
    return overlapping.confidence > threshold


def filter_protected(
    records: Iterable[SuggestionRecord],
    text: str,
    slang: List[DetectedWord],
    formality: Formality,
) -> List[SuggestionRecord]:
    """
    Drop grammar, spelling and style records overlapping protected slang.

    Records without usable offsets are located by text first; records that
    cannot be located are kept and left for the engine to drop.
    """
    if not slang:
        return list(records)

    kept = []
    for record in records:
        if SuggestionType.parse(record.type) not in PROTECTABLE_TYPES:
            kept.append(record)
            continue
        position = locate(text, record.text, record.start, record.end)
        if position is not None and should_protect(position[0], position[1], slang, formality):
            logger.debug(f"Protected slang from {record.type} suggestion {record.id} ({record.text!r})")
            continue
        kept.append(record)
    return kept
