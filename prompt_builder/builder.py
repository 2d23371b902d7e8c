from __future__ import annotations  # Phase-specific prompt assembly on LangChain chat templates

from typing import Dict, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from pydantic import BaseModel, Field

from llm_gateway.messages import ChatTurn
from .templates import (
    COMPANY_SCHEMA_HINT,
    COMPANY_SUMMARY_TEMPLATE,
    CONTEXT_CORRECTION_TEMPLATE,
    COORDINATOR_FRAMING,
    EVALUATOR_FRAMING,
    FINAL_REPORT_TEMPLATE,
    INTERVIEWER_FRAMING,
    NEXT_QUESTION_TEMPLATE,
    PHASE_TEMPERATURE,
    RECRUITER_FRAMING,
    REPORT_SCHEMA_HINT,
    ROLE_CONFIRMATION_TEMPLATE,
    Phase,
    question_focus,
)


class InterviewProfile(BaseModel):  # Session fields every interview prompt draws on
    target_position: str
    resume_content: str
    difficulty: str = "Senior"
    total_questions: int = 10
    job_description: Optional[str] = None
    company_context: Optional[str] = None
    additional_info: Optional[str] = None


class PromptBundle(BaseModel):  # Rendered prompt ready for a provider adapter
    phase: Phase
    system: str
    history: List[ChatTurn] = Field(default_factory=list)
    prompt: str
    temperature: Optional[float] = None
    focus_tag: Optional[str] = None


_PHASE_TEMPLATES: Dict[Phase, str] = {
    Phase.ROLE_CONFIRMATION: ROLE_CONFIRMATION_TEMPLATE,
    Phase.CONTEXT_CORRECTION: CONTEXT_CORRECTION_TEMPLATE,
    Phase.NEXT_QUESTION: NEXT_QUESTION_TEMPLATE,
    Phase.FINAL_REPORT: FINAL_REPORT_TEMPLATE,
    Phase.COMPANY_SUMMARY: COMPANY_SUMMARY_TEMPLATE,
}

_PHASE_FRAMING: Dict[Phase, str] = {
    Phase.ROLE_CONFIRMATION: RECRUITER_FRAMING,
    Phase.CONTEXT_CORRECTION: RECRUITER_FRAMING,
    Phase.NEXT_QUESTION: INTERVIEWER_FRAMING,
    Phase.FINAL_REPORT: EVALUATOR_FRAMING,
    Phase.COMPANY_SUMMARY: COORDINATOR_FRAMING,
}

_TEMPLATE_CACHE: Dict[Phase, ChatPromptTemplate] = {}


def _template_for(phase: Phase) -> ChatPromptTemplate:  # Chat template: framing, transcript, instruction
    template = _TEMPLATE_CACHE.get(phase)
    if template is None:
        template = ChatPromptTemplate.from_messages(
            [
                ("system", "{framing}"),
                MessagesPlaceholder("history"),
                ("human", _PHASE_TEMPLATES[phase]),
            ]
        )
        _TEMPLATE_CACHE[phase] = template
    return template


def build_prompt(
    phase: Phase,
    profile: Optional[InterviewProfile] = None,
    history: Sequence[ChatTurn] = (),
    *,
    question_number: int = 1,
    last_answer: Optional[str] = None,
    correction: Optional[str] = None,
    company_name: Optional[str] = None,
    search_results: Optional[str] = None,
) -> PromptBundle:
    """Render the prompt for ``phase``.

    Question phases pass the transcript as prior turns; the report phase
    inlines it as Q/A text so the evaluator sees it in one block. The output
    is deterministic for identical inputs.
    """

    if phase is Phase.COMPANY_SUMMARY:
        if not company_name:
            raise ValueError("company_name is required for the company summary prompt")
        company_vars: Dict[str, object] = {
            "framing": COORDINATOR_FRAMING,
            "history": [],
            "company_name": company_name,
            "search_results": (search_results or "").strip() or "(no search results; rely on general knowledge)",
            "schema": COMPANY_SCHEMA_HINT,
        }
        return _render(phase, company_vars)
    if profile is None:
        raise ValueError(f"profile is required for phase {phase.value}")

    framing = _PHASE_FRAMING[phase].format(
        difficulty=profile.difficulty,
        target_position=profile.target_position,
    )
    variables: Dict[str, object] = {"framing": framing, "profile": profile_block(profile), "history": []}
    focus_tag: Optional[str] = None
    if phase is Phase.NEXT_QUESTION:
        focus_tag, guidance = question_focus(question_number)
        variables.update(
            {
                "history": _to_messages(history),
                "question_number": question_number,
                "total_questions": profile.total_questions,
                "focus_guidance": guidance,
                "last_answer": (last_answer or "").strip() or "(none, this is the first question)",
                "difficulty": profile.difficulty,
            }
        )
    elif phase is Phase.FINAL_REPORT:
        variables.update({"transcript": transcript_block(history), "schema": REPORT_SCHEMA_HINT})
    elif phase is Phase.CONTEXT_CORRECTION:
        variables["correction"] = (correction or "").strip() or "(no correction given)"
    return _render(phase, variables, focus_tag=focus_tag)


def _render(phase: Phase, variables: Dict[str, object], *, focus_tag: Optional[str] = None) -> PromptBundle:
    messages = _template_for(phase).format_messages(**variables)
    system = _text(messages[0])
    prompt = _text(messages[-1])
    turns = [_to_turn(message) for message in messages[1:-1]]
    return PromptBundle(
        phase=phase,
        system=system,
        history=turns,
        prompt=prompt,
        temperature=PHASE_TEMPERATURE[phase],
        focus_tag=focus_tag,
    )


def profile_block(profile: InterviewProfile) -> str:  # Ordered context blocks; optional ones only when set
    lines = [
        f"- Target position: {profile.target_position}",
        f"- Difficulty: {profile.difficulty}",
        f"- Total questions: {profile.total_questions}",
        f"- Resume:\n{profile.resume_content.strip()}",
    ]
    if profile.job_description and profile.job_description.strip():
        lines.append(f"- Job description:\n{profile.job_description.strip()}")
    if profile.company_context and profile.company_context.strip():
        lines.append(f"- Company context:\n{profile.company_context.strip()}")
    if profile.additional_info and profile.additional_info.strip():
        lines.append(f"- Additional information from the candidate:\n{profile.additional_info.strip()}")
    return "\n".join(lines)


def transcript_block(history: Sequence[ChatTurn]) -> str:  # Human-readable Q/A transcript
    if not history:
        return "(no questions were answered)"
    lines: List[str] = []
    for turn in history:
        speaker = "Interviewer" if turn.role == "assistant" else "Candidate"
        lines.append(f"{speaker}: {turn.content.strip()}")
    return "\n".join(lines)


def _to_messages(history: Sequence[ChatTurn]) -> List[BaseMessage]:
    return [
        AIMessage(content=turn.content) if turn.role == "assistant" else HumanMessage(content=turn.content)
        for turn in history
    ]


def _to_turn(message: BaseMessage) -> ChatTurn:
    role = "assistant" if message.type == "ai" else "user"
    return ChatTurn(role=role, content=_text(message))


def _text(message: BaseMessage) -> str:
    content = message.content
    return content if isinstance(content, str) else str(content)


__all__ = ["InterviewProfile", "PromptBundle", "build_prompt", "profile_block", "transcript_block"]
