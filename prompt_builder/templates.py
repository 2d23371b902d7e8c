from __future__ import annotations  # Phase templates and question plan for interview prompts

from enum import Enum
from textwrap import dedent
from typing import Dict, Tuple


class Phase(str, Enum):  # Prompt phases with distinct output contracts
    ROLE_CONFIRMATION = "ROLE_CONFIRMATION"
    CONTEXT_CORRECTION = "CONTEXT_CORRECTION"
    NEXT_QUESTION = "NEXT_QUESTION"
    FINAL_REPORT = "FINAL_REPORT"
    COMPANY_SUMMARY = "COMPANY_SUMMARY"


PHASE_TEMPERATURE: Dict[Phase, float] = {
    Phase.ROLE_CONFIRMATION: 0.8,
    Phase.CONTEXT_CORRECTION: 0.8,
    Phase.NEXT_QUESTION: 0.9,
    Phase.FINAL_REPORT: 0.7,
    Phase.COMPANY_SUMMARY: 0.7,
}

INTERVIEWER_FRAMING = (
    "You are acting as a {difficulty}-level interviewer for the position of {target_position}. "
    "Your questions are rigorous, professional and insightful."
)

RECRUITER_FRAMING = (
    "You are a technical recruiting lead preparing a {difficulty}-level interview for the position of "
    "{target_position}. You do not interview the candidate yet. You verify the interview context, "
    "find ambiguities or gaps in it, and state your inference."
)

EVALUATOR_FRAMING = (
    "You are an interview coach evaluating a finished {difficulty}-level mock interview for the position of "
    "{target_position}. Your evaluation is objective, specific and constructive."
)

COORDINATOR_FRAMING = (
    "You are an interview context coordinator. You summarise what a company does so an interviewer "
    "persona can be set up."
)

ROLE_CONFIRMATION_TEMPLATE = dedent(
    """
    Interview inputs:
    {profile}

    Check whether the target position has more than one industry reading and whether the company context is thin.
    Combine the resume with the position and company context to infer the most likely interview angle.
    Write two or three sentences that state your inference plainly and end with a yes/no confirmation question.
    """
).strip()

CONTEXT_CORRECTION_TEMPLATE = dedent(
    """
    Interview inputs:
    {profile}

    The candidate corrected your previous reading of the interview context:
    {correction}

    Revise your inference using the correction.
    Write two or three sentences that restate the interview angle and end with a yes/no confirmation question.
    """
).strip()

NEXT_QUESTION_TEMPLATE = dedent(
    """
    Interview profile:
    {profile}

    This is question {question_number} of {total_questions}.
    Question focus: {focus_guidance}

    Last candidate answer:
    {last_answer}

    Decide as follows:
    1. If the last answer exists and is vague, evades the question, or lacks technical depth or a clear STAR structure, ask a sharper follow-up on that answer.
    2. Otherwise ask a new question that fits the focus above.
    Never repeat a topic already covered in the conversation.
    Frame the question for the {difficulty} level using the company and job context.
    Output only the question text with no preamble.
    """
).strip()

FINAL_REPORT_TEMPLATE = dedent(
    """
    Interview profile:
    {profile}

    Full interview transcript:
    {transcript}

    Scoring guide:
    - skill_match: how well the skills shown in the answers match the job description and resume.
    - company_fit: how well the answers relate to the company context.
    - communication_clarity: logic, clarity and professionalism of the answers.
    - star_method_application: whether behavioural answers follow the STAR structure.

    Reply with a single JSON object in exactly this shape and nothing else:
    {schema}
    """
).strip()

COMPANY_SUMMARY_TEMPLATE = dedent(
    """
    Company: {company_name}

    Known information:
    {search_results}

    Reply with a single JSON object in exactly this shape and nothing else:
    {schema}
    """
).strip()

REPORT_SCHEMA_HINT = dedent(
    """
    {
      "overall_score": <0-100>,
      "overall_summary": "<two or three sentences>",
      "scoring_matrix": {
        "skill_match": <0-10>,
        "company_fit": <0-10>,
        "communication_clarity": <0-10>,
        "star_method_application": <0-10>
      },
      "per_question_analysis": [
        {
          "question": "<question text>",
          "answer": "<candidate answer>",
          "feedback_strengths": "<strengths>",
          "feedback_improvements": "<specific improvements>",
          "suggested_answer": "<a stronger answer>"
        }
      ],
      "final_recommendations": ["<most important advice>", "<other advice>"]
    }
    """
).strip()

COMPANY_SCHEMA_HINT = dedent(
    """
    {
      "company_name": "<company name>",
      "company_summary": "<two or three sentences on core business, market position and main products>",
      "key_focus_areas": ["<business keyword>", "<core technology or domain>"]
    }
    """
).strip()


QUESTION_PLAN: Tuple[Tuple[int, str, str], ...] = (  # (last question number, tag, guidance)
    (1, "foundations", "Open with a foundational question about the candidate's background and core skills."),
    (3, "technical_depth", "Dig into the technical details of projects from the resume."),
    (7, "system_design", "Pose a system design or problem-solving scenario relevant to the role."),
)
ADVANCED_FOCUS = ("leadership", "Ask an advanced question on leadership, strategy or influence across teams.")


def question_focus(question_number: int) -> Tuple[str, str]:  # Map 1-based question number to (tag, guidance)
    for last, tag, guidance in QUESTION_PLAN:
        if question_number <= last:
            return tag, guidance
    return ADVANCED_FOCUS


__all__ = [
    "ADVANCED_FOCUS",
    "COMPANY_SCHEMA_HINT",
    "PHASE_TEMPERATURE",
    "Phase",
    "QUESTION_PLAN",
    "REPORT_SCHEMA_HINT",
    "question_focus",
]
