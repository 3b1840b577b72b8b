# backend/mentorverse/services/matchmaking.py
"""
Keyword matchmaking between a mentee's smart-match answers and a list of
mentor candidates. Stateless: the caller supplies the mentors.

Score = 4 per desired-skill match + 2 per current-skill match
      + 3 per industry match + 1 if the mentor has any open slot.
"""

import re
from typing import Dict, List, NamedTuple, Tuple

from mentorverse.schemas.matchmaking import MatchedMentor, MenteeMatchProfile, MentorCandidate

MAX_MATCHES = 4

SKILL_WEIGHT = 4
GROWTH_WEIGHT = 2
INDUSTRY_WEIGHT = 3
AVAILABILITY_BONUS = 1

_SEPARATORS = re.compile(r"[,&/\n]")
_AND_WORD = re.compile(r"\band\b", re.IGNORECASE)
_WORD_START = re.compile(r"\b\w")


class Tokens(NamedTuple):
    # lowercased phrases and their words longer than two characters
    values: List[str]
    # (as typed, lowercased) per phrase
    phrases: List[Tuple[str, str]]


class MatchBreakdown(NamedTuple):
    skill_matches: List[str]
    growth_matches: List[str]
    industry_matches: List[str]


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def _title_case(text: str) -> str:
    return _WORD_START.sub(lambda m: m.group().upper(), text)


def tokenize(value: str) -> Tokens:
    values: List[str] = []
    phrases: List[Tuple[str, str]] = []

    for segment in _SEPARATORS.split(value or ""):
        phrase = " ".join(_AND_WORD.sub(" ", segment).split())
        if not phrase:
            continue
        lower = phrase.lower()
        phrases.append((phrase, lower))
        values.append(lower)
        values.extend(w for w in lower.split() if len(w) > 2)

    return Tokens(values=_dedupe(values), phrases=phrases)


def availability_count(availability: Dict[str, List[str]]) -> int:
    return sum(len(slots) for slots in availability.values() if isinstance(slots, list))


def compute_matches(mentor: MentorCandidate, desired: Tokens, current: Tokens, industry: Tokens) -> MatchBreakdown:
    expertise = mentor.expertise
    expertise_lower = [e.lower() for e in expertise]
    expertise_text = " ".join(expertise_lower)
    haystacks = [
        mentor.company.lower(),
        mentor.title.lower(),
        expertise_text,
        (mentor.bio or "").lower(),
    ]

    skill = [e for e, low in zip(expertise, expertise_lower) if any(t in low for t in desired.values)]
    growth = [e for e, low in zip(expertise, expertise_lower) if any(t in low for t in current.values)]
    industries = [
        original for original, lower in industry.phrases
        if any(lower in h for h in haystacks)
    ]
    return MatchBreakdown(_dedupe(skill), _dedupe(growth), _dedupe(industries))


def score(matches: MatchBreakdown, slots: int) -> int:
    return (
        len(matches.skill_matches) * SKILL_WEIGHT
        + len(matches.growth_matches) * GROWTH_WEIGHT
        + len(matches.industry_matches) * INDUSTRY_WEIGHT
        + (AVAILABILITY_BONUS if slots > 0 else 0)
    )


def build_reason(mentor: MentorCandidate, matches: MatchBreakdown, slots: int) -> str:
    parts: List[str] = []

    if matches.skill_matches:
        parts.append("Expert in " + ", ".join(_title_case(s) for s in matches.skill_matches[:3]))
    elif matches.growth_matches:
        parts.append(
            "Experienced with your current skills: "
            + ", ".join(_title_case(s) for s in matches.growth_matches[:3])
        )

    if matches.industry_matches:
        parts.append("Works closely with " + " & ".join(_title_case(i) for i in matches.industry_matches[:2]))

    if slots > 0:
        parts.append(f"Has {slots} upcoming time slot{'s' if slots > 1 else ''} available")

    if not parts:
        parts.append(f"Strong background as {mentor.title} at {mentor.company}")

    return ". ".join(parts) + "."


def rank_mentors(profile: MenteeMatchProfile, mentors: List[MentorCandidate]) -> List[MatchedMentor]:
    """
    Best matches first (score, then open slots, then name). Only mentors
    with a positive score are returned; when none has one, the first few
    candidates in that order are returned instead so the list is never empty.
    """
    desired = tokenize(profile.desired_skills)
    current = tokenize(profile.current_skills)
    industry = tokenize(profile.industry_interests)

    scored = []
    for mentor in mentors:
        matches = compute_matches(mentor, desired, current, industry)
        slots = availability_count(mentor.availability)
        scored.append((score(matches, slots), slots, mentor, matches))

    scored.sort(key=lambda item: (-item[0], -item[1], item[2].name.casefold()))

    chosen = [item for item in scored if item[0] > 0][:MAX_MATCHES] or scored[:MAX_MATCHES]
    return [
        MatchedMentor(
            **mentor.model_dump(),
            match_reasoning=build_reason(mentor, matches, slots),
        )
        for _, slots, mentor, matches in chosen
    ]
