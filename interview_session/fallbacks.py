"""Deterministic substitutes used when a provider call exhausts its retries."""
from __future__ import annotations

from typing import Optional, Tuple

from .models import ReportContent, ScoringMatrix

OPENING_QUESTION = "Let's begin. Can you tell me about yourself and your background?"

FALLBACK_QUESTIONS: Tuple[str, ...] = (
    "Can you walk me through a recent project you are proud of and your specific role in it?",
    "What was the most difficult technical problem you solved recently, and how did you approach it?",
    "Describe a time you had to make a trade-off between speed and quality. What did you decide and why?",
    "How would you design a system that has to handle a sudden tenfold increase in traffic?",
    "Tell me about a time a project did not go as planned. What did you learn from it?",
    "How do you make sure the code you ship is reliable and maintainable?",
    "Describe a situation where you disagreed with a teammate on a technical decision. How was it resolved?",
    "How do you approach learning a new technology or domain quickly?",
    "Tell me about a time you influenced a decision without having formal authority.",
    "Where do you see the biggest opportunity to grow in this role, and how would you pursue it?",
)

PLACEHOLDER_SUMMARY = "The evaluation report is still being generated. Please check back shortly."


def fallback_question(answered: int) -> str:  # Cyclic pick keyed on the number of answered questions
    return FALLBACK_QUESTIONS[answered % len(FALLBACK_QUESTIONS)]


def fallback_confirmation(target_position: str, company_name: Optional[str] = None) -> str:
    where = f" at {company_name}" if company_name else ""
    return (
        f"I will prepare an interview for the {target_position} position{where}, "
        "focused on the skills and experience in your resume. Is this the interview context you expect?"
    )


def placeholder_report() -> ReportContent:  # Neutral scores, empty analysis
    return ReportContent(
        overall_score=50,
        overall_summary=PLACEHOLDER_SUMMARY,
        scoring_matrix=ScoringMatrix(
            skill_match=5,
            company_fit=5,
            communication_clarity=5,
            star_method_application=5,
        ),
        per_question_analysis=[],
        final_recommendations=[],
        is_placeholder=True,
    )


__all__ = [
    "FALLBACK_QUESTIONS",
    "OPENING_QUESTION",
    "PLACEHOLDER_SUMMARY",
    "fallback_confirmation",
    "fallback_question",
    "placeholder_report",
]
