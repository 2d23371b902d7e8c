from __future__ import annotations  # Re-export prompt_builder public API

from .builder import InterviewProfile, PromptBundle, build_prompt, profile_block, transcript_block
from .templates import PHASE_TEMPERATURE, Phase, question_focus

__all__ = [
    "InterviewProfile",
    "PHASE_TEMPERATURE",
    "Phase",
    "PromptBundle",
    "build_prompt",
    "profile_block",
    "question_focus",
    "transcript_block",
]
