"""
Model response parsing and JSON repair

Language models asked for JSON frequently return prose around it, markdown
fences, unquoted keys, single quotes, trailing commas or output cut off in the
middle of an object. The helpers here recover as much structure as possible
before the callers fall back to defaults.
"""

import json
import logging
import math
import re
from typing import Any, Dict, Iterator, List, Optional

from genedash.core.errors import ResponseParseError
from genedash.schemas import MarkerInput, MarkerInterpretation, RiskAssessmentDraft

logger = logging.getLogger(__name__)

MIN_RISK = 1.0
MAX_RISK = 5.0
DEFAULT_MARKER_RISK = 3.0
DEFAULT_ASSESSMENT_RISK = 2.5
MAX_SALVAGED_ASSESSMENTS = 4
# Candidate start positions tried before giving up on a response
MAX_START_CANDIDATES = 10

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_CODE_FENCE = re.compile(r"```(?:json|JSON)?")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})

_decoder = json.JSONDecoder(strict=False)

DEFAULT_ASSESSMENT = {
    "category": "General Health",
    "subcategory": "Overall Risk",
    "risk_level": DEFAULT_ASSESSMENT_RISK,
    "description": "Risk assessment could not be completed. Please try again.",
    "recommendation": "Contact support if this issue persists.",
}


def clean_response(text: str) -> str:
    """Strip markdown fences and control characters"""
    text = _CODE_FENCE.sub("", text or "")
    return _CONTROL_CHARS.sub(" ", text)


def clamp_risk(value: float) -> float:
    return min(MAX_RISK, max(MIN_RISK, value))


def coerce_number(value: Any) -> Optional[float]:
    """Read a finite number from an int, float or text such as '4', '4.5/5' or 'about 3'"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _NUMBER.search(value)
        if match:
            return float(match.group())
    return None


class _Repairer:
    """Single pass scanner that rewrites almost-JSON into JSON

    Works outside string literals only: quotes bare keys and bare string
    values, converts single-quoted strings, inserts missing commas between
    values, drops trailing commas, and when the input ends early cuts back to
    the last completed element and closes the open containers.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.out: List[str] = []
        self.stack: List[str] = []
        self.expect_key = False
        self.after_value = False
        # (len(out), stack snapshot) at the last completed element
        self.safe_cut = None

    def run(self) -> str:
        text = self.text
        started = False
        while self.pos < len(text):
            ch = text[self.pos]

            if started and not self.stack:
                break

            if ch in "{[":
                self._before_value()
                self.out.append(ch)
                self.stack.append(ch)
                self.expect_key = ch == "{"
                self.after_value = False
                started = True
                self.pos += 1
            elif not started:
                self.pos += 1
            elif ch.isspace():
                self.out.append(" ")
                self.pos += 1
            elif ch in "}]":
                if not self.stack:
                    break
                self._drop_trailing_comma()
                self.out.append("}" if self.stack[-1] == "{" else "]")
                self.stack.pop()
                self.pos += 1
                self._value_done()
            elif ch == ",":
                self._drop_trailing_comma()
                if self.out and self.out[-1] not in ("{", "["):
                    self.out.append(",")
                self.expect_key = bool(self.stack) and self.stack[-1] == "{"
                self.after_value = False
                self.pos += 1
            elif ch == ":":
                self.out.append(":")
                self.expect_key = False
                self.after_value = False
                self.pos += 1
            elif ch == '"':
                if not self._string('"'):
                    return self._truncated()
            elif ch == "'":
                if not self._string("'"):
                    return self._truncated()
            else:
                self._bareword()

        if self.stack:
            return self._truncated()
        return "".join(self.out).strip()

    def _before_value(self):
        if self.after_value and self.stack:
            self.out.append(",")
            self.expect_key = self.stack[-1] == "{"

    def _value_done(self):
        self.after_value = True
        self.expect_key = False
        if self.stack:
            self.safe_cut = (len(self.out), list(self.stack))

    def _drop_trailing_comma(self):
        while self.out and self.out[-1] == " ":
            self.out.pop()
        if self.out and self.out[-1] == ",":
            self.out.pop()

    def _string(self, quote: str) -> bool:
        """Copy a string literal; False when the input ends inside it"""
        self._before_value()
        is_key = self.expect_key
        text = self.text
        i = self.pos + 1
        chars = []
        while i < len(text):
            ch = text[i]
            if ch == "\\" and i + 1 < len(text):
                nxt = text[i + 1]
                if quote == "'" and nxt == "'":
                    chars.append("'")
                else:
                    chars.append(ch + nxt)
                i += 2
                continue
            if ch == quote:
                break
            if quote == "'" and ch == '"':
                chars.append('\\"')
            else:
                chars.append(ch)
            i += 1
        else:
            return False

        self.out.append('"' + "".join(chars) + '"')
        self.pos = i + 1
        if is_key:
            self.after_value = False
            self.expect_key = False
        else:
            self._value_done()
        return True

    def _bareword(self):
        self._before_value()
        text = self.text
        stops = ":,}]" if self.expect_key else ",}]"
        i = self.pos
        while i < len(text) and text[i] not in stops and text[i] not in "{[\"":
            i += 1
        word = text[self.pos:i].strip()
        self.pos = i
        if not word:
            return

        if self.expect_key:
            self.out.append(json.dumps(word))
            self.expect_key = False
            self.after_value = False
            return

        self.out.append(self._scalar(word))
        self._value_done()

    @staticmethod
    def _scalar(word: str) -> str:
        if word in ("true", "false", "null"):
            return word
        if word in ("True", "False", "None"):
            return {"True": "true", "False": "false", "None": "null"}[word]
        try:
            json.loads(word)
            return word
        except ValueError:
            pass
        try:
            return json.dumps(float(word))
        except ValueError:
            return json.dumps(word)

    def _truncated(self) -> str:
        if self.safe_cut is not None:
            length, stack = self.safe_cut
            out = self.out[:length]
        else:
            out, stack = self.out, self.stack
        self.out = out
        self._drop_trailing_comma()
        closers = "".join("}" if opener == "{" else "]" for opener in reversed(stack))
        return ("".join(self.out) + closers).strip()


def repair_json(text: str) -> str:
    """Best-effort conversion of model output into parseable JSON text"""
    return _Repairer(clean_response(text).translate(_SMART_QUOTES)).run()


def _candidate_starts(text: str, opener: str) -> List[int]:
    starts = []
    index = text.find(opener)
    while index != -1 and len(starts) < MAX_START_CANDIDATES:
        starts.append(index)
        index = text.find(opener, index + 1)
    return starts


def _decode_at(text: str, start: int) -> Any:
    try:
        value, _ = _decoder.raw_decode(text, start)
        return value
    except ValueError:
        return None


def _decode_repaired(text: str, start: int) -> Any:
    try:
        return json.loads(repair_json(text[start:]))
    except ValueError:
        return None


def _closing_index(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at start, or None if it never closes"""
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return index
    return None


def _decoded_candidates(text: str, opener: str) -> Iterator[Any]:
    """Strict then repaired decodes of each outermost candidate, in order

    Candidates nested inside an earlier candidate's brackets are skipped, so
    a valid inner value never shadows a repairable outer one.
    """
    covered_until = -1
    for start in _candidate_starts(text, opener):
        if start <= covered_until:
            continue
        yield _decode_at(text, start)
        yield _decode_repaired(text, start)
        end = _closing_index(text, start)
        if end is not None:
            covered_until = end


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of a model response"""
    cleaned = clean_response(text)
    start = cleaned.find("{")
    if start == -1:
        return None

    # Whole span from the first '{' to the last '}' with whitespace normalised
    end = cleaned.rfind("}")
    if end > start:
        span = " ".join(cleaned[start:end + 1].split())
        try:
            value = json.loads(span, strict=False)
            if isinstance(value, dict):
                return value
        except ValueError:
            pass

    for value in _decoded_candidates(cleaned, "{"):
        if isinstance(value, dict) and value:
            return value
    return None


def extract_json_array(text: str) -> Optional[List[Any]]:
    """Pull a JSON array of objects out of a model response

    Also accepts an object wrapping the array, e.g. {"assessments": [...]}.
    """
    cleaned = clean_response(text)
    start = cleaned.find("[")
    # An empty list only counts when it is the outermost array in the reply
    empty_reply = start != -1 and _decode_at(cleaned, start) == []

    for value in _decoded_candidates(cleaned, "["):
        if isinstance(value, list) and any(isinstance(item, dict) for item in value):
            return value

    wrapper = extract_json_object(cleaned)
    if isinstance(wrapper, dict):
        for key in ("assessments", "risk_assessments", "riskAssessments", "results"):
            if isinstance(wrapper.get(key), list):
                return wrapper[key]
        if "category" in wrapper:
            return [wrapper]
    if empty_reply:
        return []
    return None


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, list):
        value = "; ".join(str(item) for item in value if item)
    value = str(value).strip()
    return value or default


def _string_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def parse_marker_interpretation(text: str, marker: MarkerInput) -> MarkerInterpretation:
    """Coerce a free-text model reply into a marker interpretation

    Gene, variant and genotype always come from the submitted marker, never
    from the model.
    """
    data = extract_json_object(text)
    if data is None:
        raise ResponseParseError(f"No JSON object in model response for {marker.gene} {marker.variant}")

    risk = coerce_number(_pick(data, "riskScore", "risk_score", "risk"))
    return MarkerInterpretation(
        **marker.model_dump(),
        impact=_text(_pick(data, "impact"), "Unknown"),
        clinical_significance=_text(
            _pick(data, "clinicalSignificance", "clinical_significance", "significance"), "VUS"
        ),
        risk_score=clamp_risk(risk if risk is not None else DEFAULT_MARKER_RISK),
        health_category=_text(_pick(data, "healthCategory", "health_category", "category"), "General Health"),
        subcategory=_text(_pick(data, "subcategory", "subCategory", "condition"), "Genetic Variant"),
        explanation=_text(_pick(data, "explanation", "interpretation", "summary"), "Analysis pending"),
        recommendations=_string_list(_pick(data, "recommendations", "recommendation")),
        source="llm",
    )


def _assessment_from_dict(item: Dict[str, Any]) -> Optional[RiskAssessmentDraft]:
    category = _pick(item, "category", "condition", "healthCategory", "health_category")
    if category is None:
        return None
    risk = coerce_number(_pick(item, "riskLevel", "risk_level", "riskScore", "risk_score", "risk"))
    return RiskAssessmentDraft(
        category=_text(category, "General Health"),
        subcategory=_text(_pick(item, "subcategory", "subCategory", "condition"), "Risk Assessment"),
        risk_level=clamp_risk(risk if risk is not None else DEFAULT_ASSESSMENT_RISK),
        description=_text(_pick(item, "description", "explanation"), ""),
        recommendation=_text(_pick(item, "recommendation", "recommendations"), ""),
    )


_CATEGORY_PATTERN = re.compile(r'"category"\s*:\s*"([^"]+)"')
_RISK_LEVEL_PATTERN = re.compile(r'"risk_?level"\s*:\s*"?([0-9.]+)', re.IGNORECASE)


def salvage_assessments(text: str) -> List[RiskAssessmentDraft]:
    """Regex fallback for output too damaged to parse

    Only used when more than one category can be recognised; a single stray
    match is more likely noise than a real assessment list.
    """
    categories = _CATEGORY_PATTERN.findall(text)
    if len(categories) <= 1:
        return []
    levels = _RISK_LEVEL_PATTERN.findall(text)

    drafts = []
    for index, category in enumerate(categories[:MAX_SALVAGED_ASSESSMENTS]):
        level = coerce_number(levels[index]) if index < len(levels) else None
        drafts.append(RiskAssessmentDraft(
            category=category,
            subcategory="Risk Assessment",
            risk_level=clamp_risk(level if level is not None else DEFAULT_ASSESSMENT_RISK),
            description=f"Risk assessment for {category}",
            recommendation="Consult with healthcare provider for detailed guidance.",
        ))
    return drafts


def parse_risk_assessments(text: str) -> List[RiskAssessmentDraft]:
    """Turn a model reply into risk assessments, degrading step by step

    parsed array -> regex salvage -> single default assessment
    """
    items = extract_json_array(text)
    if items is not None:
        drafts = [draft for draft in (
            _assessment_from_dict(item) for item in items if isinstance(item, dict)
        ) if draft is not None]
        if drafts or not items:
            return drafts
        logger.warning("⚠️ Risk assessment array had no usable entries, trying salvage")
    else:
        logger.warning(f"⚠️ Could not parse risk assessments, raw response: {text[:500]}...")

    drafts = salvage_assessments(clean_response(text))
    if drafts:
        return drafts
    return [RiskAssessmentDraft(**DEFAULT_ASSESSMENT)]
