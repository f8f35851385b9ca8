# Quality scoring for optimized content: hallucination risk (0..1) + LLM visibility (0..100)

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.utils.clock import iso_now


logger = logging.getLogger(__name__)


MARKETING_PHRASES = (
    "best on the market", "award-winning", "top-rated", "perfect for everyone",
    "our #1 product", "industry-leading", "revolutionary", "game-changing",
    "unparalleled quality", "premium quality", "luxury", "exclusive",
)
HYPE_WORDS = ("amazing", "incredible", "perfect")
PRACTICAL_TERMS = ("sizing", "size", "material", "best for", "suitable for", "care", "wash", "fit")
TECHNICAL_TERMS = ("gsm", "cotton", "polyester", "wool", "dimensions", "weight", "temperature", "breathable")

DEFAULT_RISK = 0.5
DEFAULT_VISIBILITY = 50
HIGH_RISK_THRESHOLD = 0.7


@dataclass(slots=True)
class QualityAssessment:
    risk_score: float
    visibility_score: int
    is_high_risk: bool
    quality_grade: str
    recommendations: List[str] = field(default_factory=list)
    timestamp: str = ""

    def to_payload(self) -> Dict[str, Any]:
        d = asdict(self)
        return {
            "riskScore": d["risk_score"],
            "visibilityScore": d["visibility_score"],
            "isHighRisk": d["is_high_risk"],
            "qualityGrade": d["quality_grade"],
            "recommendations": d["recommendations"],
            "timestamp": d["timestamp"],
        }


# ---------- helpers ----------
def _as_mapping(result: Any) -> Mapping[str, Any]:
    # OptimizationResult or an already-serialized dict with camelCase keys
    if hasattr(result, "model_dump"):
        return result.model_dump(by_alias=True)
    return result or {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _faq_pair(faq: Any) -> tuple[str, str]:
    if hasattr(faq, "question"):
        return _text(faq.question), _text(faq.answer)
    if isinstance(faq, Mapping):
        return _text(faq.get("q") or faq.get("question")), _text(faq.get("a") or faq.get("answer"))
    return "", ""


def _faqs(result: Mapping[str, Any]) -> Optional[List[Any]]:
    faqs = result.get("faqs")
    return faqs if isinstance(faqs, list) else None


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or value == "N/A" or value.strip() == ""


def _round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


# ---------- scores ----------
def calculate_hallucination_risk(
    result: Any,
    original: Mapping[str, Any],
    keywords: Optional[Iterable[str]] = None,
) -> float:
    """
    Penalties add up, the grounding bonus subtracts; clamped to [0, 1] and rounded to 2 dp.
      +0.2 each marketing phrase | +0.2 "guarantee" in FAQs | +0.2 summary+content > 3x original
      +0.1 summary == title      | +0.2 no keyword grounded
      -0.2 short summary, no hype words, first 10 chars of the title present
    Any internal error returns 0.5.
    """
    try:
        r = _as_mapping(result)
        original = original or {}
        keywords = [k for k in (keywords or []) if isinstance(k, str) and k]

        summary = _text(r.get("summary"))
        content = _text(r.get("content"))
        faqs = _faqs(r)
        title = _text(original.get("title"))
        original_body = _text(original.get("body_html") or original.get("body") or original.get("description"))

        all_text = " ".join([
            summary, content, _text(r.get("optimizedDescription")), _text(r.get("llmDescription")),
        ]).lower()

        score = 0.0
        for phrase in MARKETING_PHRASES:
            if phrase in all_text:
                score += 0.2

        if faqs and any("guarantee" in (q + a).lower() for q, a in map(_faq_pair, faqs)):
            score += 0.2

        original_length = len(title) + len(original_body)
        if original_length > 0 and len(summary) + len(content) > original_length * 3:
            score += 0.2

        if summary and title and summary.strip().lower() == title.strip().lower():
            score += 0.1

        if keywords:
            answers = [a.lower() for _, a in map(_faq_pair, faqs or [])]
            grounded = any(
                kw.lower() in all_text or any(kw.lower() in a for a in answers)
                for kw in keywords
            )
            if not grounded:
                score += 0.2

        if (
            summary and len(summary) < 100
            and not any(w in all_text for w in HYPE_WORDS)
            and title and title.lower()[:10] in all_text
        ):
            score -= 0.2

        return _round_half_up(min(1.0, max(0.0, score)), 2)

    except Exception:
        logger.exception("scorer.risk.error")
        return DEFAULT_RISK


def calculate_visibility_score(result: Any) -> int:
    """
    Starts at 100.
      -10 each missing / "N/A" field (summary, llmDescription, content, optimizedDescription)
      -10 fewer than 2 FAQs | -10 no practical info
      +5 at least 4 FAQs with one substantive item | +5 technical specifics
    Clamped to [0, 100]; any internal error returns 50.
    """
    try:
        r = _as_mapping(result)
        faqs = _faqs(r)

        score = 100
        for key in ("summary", "llmDescription", "content", "optimizedDescription"):
            if _is_blank(r.get(key)):
                score -= 10

        if not faqs or len(faqs) < 2:
            score -= 10

        all_content = " ".join([
            _text(r.get("content")), _text(r.get("optimizedDescription")), _text(r.get("llmDescription")),
        ]).lower()

        if not any(term in all_content for term in PRACTICAL_TERMS):
            score -= 10

        if faqs and len(faqs) >= 4:
            for q, a in map(_faq_pair, faqs):
                if len(q) > 10 and len(a) > 20 and "what is" not in q.lower() and "N/A" not in a:
                    score += 5
                    break

        if any(term in all_content for term in TECHNICAL_TERMS):
            score += 5

        return int(min(100, max(0, score)))

    except Exception:
        logger.exception("scorer.visibility.error")
        return DEFAULT_VISIBILITY


# ---------- assessment ----------
def quality_grade(visibility_score: int) -> str:
    if visibility_score >= 90:
        return "A"
    if visibility_score >= 80:
        return "B"
    if visibility_score >= 70:
        return "C"
    if visibility_score >= 60:
        return "D"
    return "F"


def generate_recommendations(risk_score: float, visibility_score: int) -> List[str]:
    recs: List[str] = []

    if risk_score > 0.7:
        recs.append("High hallucination risk detected - consider reverting to original content")
    elif risk_score > 0.5:
        recs.append("Moderate hallucination risk - review for generic marketing language")

    if visibility_score < 60:
        recs.append("Low visibility score - add more practical information and technical details")
    elif visibility_score < 80:
        recs.append("Good visibility - consider adding more FAQs or technical specifications")

    if not recs:
        recs.append("Content quality is excellent - ready for publication")
    return recs


def assess_content_quality(
    result: Any,
    original: Mapping[str, Any],
    keywords: Optional[Iterable[str]] = None,
    *,
    threshold: float = HIGH_RISK_THRESHOLD,
) -> QualityAssessment:
    risk = calculate_hallucination_risk(result, original, keywords)
    visibility = calculate_visibility_score(result)
    return QualityAssessment(
        risk_score=risk,
        visibility_score=visibility,
        is_high_risk=risk > threshold,
        quality_grade=quality_grade(visibility),
        recommendations=generate_recommendations(risk, visibility),
        timestamp=iso_now(),
    )
