"""
Prompt templates for the ReAct analysis agent.
"""

from typing import List, Optional

SYSTEM_PROMPT = """You are a senior security operations engineer. Analyse the security alert \
with the ReAct (Reasoning + Acting) process.
Always answer in exactly this format:
Thought: <your reasoning>
Action: <action name or None>
Action Input: <JSON or text arguments>
Observation: <result of the previous action, omit on the first turn>
Final Answer: <only once the analysis is complete>

Available actions:
- MCP.<tool>: call a tool on the user's MCP server; <tool> is the tool name.
- report: draft the handling recommendations.
{tool_section}
Never reveal credentials or API keys."""


def build_system_prompt(tools: Optional[List[str]] = None) -> str:
    """Render the system prompt, listing the allowed MCP tools when known."""
    if tools:
        tool_section = "\nMCP tools on the active server: " + ", ".join(tools) + "\n"
    else:
        tool_section = ""
    return SYSTEM_PROMPT.format(tool_section=tool_section)


def build_user_prompt(alert: str) -> str:
    return "\n".join([
        "Here is the latest security alert. Assess it with the ReAct process:",
        "",
        alert.strip(),
    ])
