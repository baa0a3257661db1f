"""
Analysis agent: ReAct loop, prompts and response parsing.
"""

from secguard.agents.analysis.parser import ReActStep, parse_react_response
from secguard.agents.analysis.prompts import build_system_prompt, build_user_prompt
from secguard.agents.analysis.react import ReActAgent, StepDecision

__all__ = [
    "ReActAgent",
    "StepDecision",
    "ReActStep",
    "parse_react_response",
    "build_system_prompt",
    "build_user_prompt",
]
