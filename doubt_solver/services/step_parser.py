"""
Step parser: turns free-form tutor output into a steppable ``Solution``.

The model is asked for "**Step N:**" blocks but nothing guarantees it
complies, so extraction is a cascade of independent strategies tried from
most to least specific:

1. bold headers        ``**Step 1:** ...``
2. loose headers       ``Step 1: ...`` / ``Step 1 - ...``
3. numbered list items ``1. ...`` / ``1) ...``, only at the start of a line
   or after a clause terminator, so "x = 8. 2. Divide" splits after the 8
   and not before it

Strategies run on the tag-stripped text with its line breaks intact; step
bodies are whitespace-collapsed afterwards. The first strategy with at least
two raw matches is selected. Its matches are cleaned and filtered; if fewer
than two steps survive, the parser does not fall back to the next tier but
synthesizes steps from sentences and paragraphs. When even that finds
nothing, the whole text becomes a single step, so the result is never empty.

The final answer is looked up independently with three patterns (explicit
marker, "approximately N unit", "N unit remaining/of the/is the").

Everything here is a pure function of the input text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from doubt_solver.models.schemas import SENTINEL_ANSWER, Solution, Step

STEP_TEXT_MAX = 800
FALLBACK_TEXT_MAX = 600
FALLBACK_MIN_CHARS = 25
FALLBACK_MAX_STEPS = 6
WHOLE_TEXT_MAX = 1000
NOISE_MAX_CHARS = 15
MIN_STEPS = 2

# Attributes must carry a value, so comparisons like "a<b and c>d" are not tags.
_TAG_RE = re.compile(
    r"<!--.*?-->"
    r"|<![A-Za-z][^<>]*>"
    r"|</?[A-Za-z][A-Za-z0-9]*"
    r"(?:\s+[A-Za-z_:][\w:.\-]*\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s\"'<>=]+))*\s*/?>",
    re.DOTALL,
)
_WS_RE = re.compile(r"\s+")
_PARAGRAPH_RE = re.compile(r"\n[ \t]*\n")
_SENTENCE_RE = re.compile(r"\.\s+(?=[A-Z])")
_BOLD_RE = re.compile(r"\*\*")
_NUMBER_PREFIX_RE = re.compile(r"^\d+[.)]\s*")
_CONCEPT_RE = re.compile(r"^([A-Z][A-Za-z' ()\-]{0,38}[A-Za-z)])\s*:\s+\S")

# A step ends where the next header of its kind starts, at a "Final" marker, or at the end.
_FINAL = r"\*\*\s*Final|\bFinal\s+Answer|\bAnswer\s*:"


def _strategy_pattern(header: str, next_header: str) -> Pattern:
    return re.compile(
        rf"{header}\s*(.*?)(?={next_header}|{_FINAL}|\Z)",
        re.IGNORECASE | re.DOTALL,
    )


@dataclass(frozen=True)
class StepStrategy:
    """One tier of the cascade: a header pattern plus its noise floor."""
    name: str
    pattern: Pattern
    # cleaned texts this long or shorter are dropped as noise
    noise_max_chars: int

    def find(self, text: str) -> List[Tuple[int, str]]:
        """Raw ``(number, body)`` pairs in source order; the count is the tier's confidence."""
        return [(int(m.group(1)), m.group(2)) for m in self.pattern.finditer(text)]

    def clean(self, matches: List[Tuple[int, str]]) -> List[Step]:
        steps: List[Step] = []
        for position, (number, body) in enumerate(matches, start=1):
            text = _clean_step_text(body)
            if len(text) <= self.noise_max_chars:
                continue
            steps.append(Step(index=number or position, text=text, concept=extract_concept(text)))
        return steps


# Bold headers are explicit structure, so only empty bodies count as noise there.
CASCADE: Tuple[StepStrategy, ...] = (
    StepStrategy(
        name="bold",
        pattern=_strategy_pattern(
            r"\*\*\s*Step\s*(\d+)\s*[:.]?\s*(?:\*\*\s*:?)?",
            r"\*\*\s*Step\s*\d+",
        ),
        noise_max_chars=0,
    ),
    StepStrategy(
        name="loose",
        pattern=_strategy_pattern(
            r"(?<![A-Za-z0-9])Step\s*(\d+)\s*[:.\-)]?",
            r"(?<![A-Za-z0-9])Step\s*\d+",
        ),
        noise_max_chars=NOISE_MAX_CHARS,
    ),
    StepStrategy(
        name="numbered",
        pattern=_strategy_pattern(
            r"(?:^|(?<=\n)|(?<=[.:;!?]\s))[ \t]*(\d{1,2})[.)](?=\s)",
            r"(?:(?<=\n)[ \t]*|(?<=[.:;!?]\s))\d{1,2}[.)]\s",
        ),
        noise_max_chars=NOISE_MAX_CHARS,
    ),
)

_ANSWER_LEAD_RE = re.compile(r"^[:=,;]\s*")
_UNIT = r"(?:\s*%|\s*[a-zA-Z/^²³⁰¹⁴⁵⁶⁷⁸⁹]+)?"

ANSWER_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(
        r"\b(?:Final\s+Answer|Answer|Therefore|Hence|Result)\b\s*(?:\*\*)?\s*[:=]?\s*(?:\*\*)?\s*(.{1,150}?)(?:\.(?!\d)|\Z)",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(rf"\b(?:approximately|about|roughly)\s+(\d[\d.,]*{_UNIT})", re.IGNORECASE),
    re.compile(
        rf"(\d+(?:\.\d+)?(?:\s*[×*]\s*10\^[\-\d]+)?{_UNIT})\s*(?:will remain|remaining|of the|is the)",
        re.IGNORECASE,
    ),
)


# ------------------------------------------------------------------------------
# normalization
# ------------------------------------------------------------------------------

def _strip_markup(text: str) -> str:
    text = _TAG_RE.sub("", text.strip())
    # &amp; last so "&amp;lt;" decodes to "&lt;", not "<"
    return text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")


def _collapse(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def normalize(text: str) -> str:
    """Tags removed, the three common entities decoded, whitespace collapsed."""
    return _collapse(_strip_markup(text or ""))


def _clean_step_text(body: str) -> str:
    text = _collapse(_BOLD_RE.sub("", body))
    text = _NUMBER_PREFIX_RE.sub("", text).strip()
    return text[:STEP_TEXT_MAX].rstrip()


def extract_concept(text: str) -> Optional[str]:
    """Short "Heading: ..." lead-in of a step, if it has one."""
    m = _CONCEPT_RE.match(text)
    if not m:
        return None
    label = m.group(1).strip()
    return label if len(label.split()) <= 5 else None


# ------------------------------------------------------------------------------
# extraction
# ------------------------------------------------------------------------------

def select_steps(text: str, cascade: Tuple[StepStrategy, ...] = CASCADE) -> Optional[List[Step]]:
    """Steps from the first tier with enough raw matches, or None if the cascade gives up."""
    for strategy in cascade:
        matches = strategy.find(text)
        if len(matches) < MIN_STEPS:
            continue
        steps = strategy.clean(matches)
        return steps if len(steps) >= MIN_STEPS else None
    return None


def synthesize_steps(marked_up_text: str) -> List[Step]:
    """Sentence/paragraph split used when no header structure is found."""
    segments: List[str] = []
    for paragraph in _PARAGRAPH_RE.split(marked_up_text):
        segments.extend(_SENTENCE_RE.split(_collapse(paragraph)))

    kept = [s.strip() for s in segments if len(s.strip()) > FALLBACK_MIN_CHARS][:FALLBACK_MAX_STEPS]
    return [Step(index=i, text=s[:FALLBACK_TEXT_MAX]) for i, s in enumerate(kept, start=1)]


def extract_final_answer(text: str) -> str:
    for pattern in ANSWER_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        answer = _BOLD_RE.sub("", m.group(1)).strip()
        # only the separator goes; a leading minus belongs to the answer
        answer = _ANSWER_LEAD_RE.sub("", answer)
        answer = re.sub(r"\.$", "", answer).strip()
        if answer:
            return answer
    return SENTINEL_ANSWER


def parse(raw_text: Optional[str]) -> Solution:
    marked_up = _strip_markup(raw_text or "")
    text = _collapse(marked_up)

    steps = select_steps(marked_up) or synthesize_steps(marked_up)
    if not steps:
        steps = [Step(index=1, text=text[:WHOLE_TEXT_MAX])]

    return Solution(steps=steps, final_answer=extract_final_answer(text), explanation=text)
