"""
ReAct analysis agent.

Drives the Thought -> Action -> Observation loop over a security alert:
asks the model for the next step, dispatches the proposed action and feeds
the observation back until the model gives a final answer, stops acting,
or the step budget runs out. Progress is reported as ``StepEvent``s.
"""

import json
import logging
import time
import uuid
from enum import Enum
from typing import Any, AsyncIterator, Callable, List, Optional

from secguard.agents.analysis.parser import ReActStep, parse_react_response, safe_parse_json
from secguard.agents.analysis.prompts import build_system_prompt, build_user_prompt
from secguard.audit.logger import AuditLogger
from secguard.core.config.manager import NoActionPolicy, SecGuardSettings
from secguard.core.exceptions import ConfigError, LLMError, PolicyError, SecGuardError
from secguard.core.state.model import Conversation, StepEvent, StepEventType
from secguard.tools.mcp.client import MCPClient
from secguard.utils.llm import LLMClient

MCP_ACTION_PREFIX = "MCP."
REPORT_ACTION = "report"

DEMO_ACTION = "MCP.stub_enrich"
DEMO_THOUGHT = "No model credentials detected; running the offline demo."
DEMO_OBSERVATION = "Sample: IOC lookup shows the IP is associated with known cryptomining activity."
DEMO_FINAL = "Configure a real API key or access code to run the full analysis."


class StepDecision(str, Enum):
    """What the loop does with a parsed model turn."""
    FINAL_ANSWER = "final_answer"
    NO_ACTION = "no_action"
    MANUAL = "manual"
    EXECUTE = "execute"


def decide(step: ReActStep, auto_run: bool) -> StepDecision:
    """Apply the per-step decision table, first match wins."""
    if step.final_answer:
        return StepDecision.FINAL_ANSWER
    if not step.has_action:
        return StepDecision.NO_ACTION
    if not auto_run:
        return StepDecision.MANUAL
    return StepDecision.EXECUTE


def serialize_observation(observation: Any) -> str:
    if isinstance(observation, str):
        return observation
    return json.dumps(observation, indent=2, ensure_ascii=False, default=str)


class ReActAgent:
    """ReAct loop over security alerts."""

    def __init__(self, settings: Optional[SecGuardSettings],
                 llm_client: Optional[LLMClient] = None,
                 mcp_client: Optional[MCPClient] = None,
                 audit_logger: Optional[AuditLogger] = None):
        self.logger = logging.getLogger(__name__)
        self.audit_logger = audit_logger or AuditLogger()
        self.settings: Optional[SecGuardSettings] = None
        self.llm_client = llm_client
        self.mcp_client = mcp_client

        if settings is not None:
            self.update_settings(settings)

    def update_settings(self, settings: SecGuardSettings):
        """Reconfigure the agent and its clients for the next run."""
        self.settings = settings

        if self.llm_client is None:
            self.llm_client = LLMClient(settings.llm)
        else:
            self.llm_client.update_config(settings.llm)

        if self.mcp_client is None:
            self.mcp_client = MCPClient(settings.mcp)
        else:
            self.mcp_client.update_config(settings.mcp)

    async def run(self, alert: str,
                  emit: Optional[Callable[[StepEvent], None]] = None) -> List[StepEvent]:
        """Run the loop to completion, passing each event to ``emit``."""
        events = []
        async for event in self.stream(alert):
            events.append(event)
            if emit is not None:
                emit(event)
        return events

    async def stream(self, alert: str) -> AsyncIterator[StepEvent]:
        """Yield the step events of one analysis run.

        Raises:
            ConfigError: If the alert is empty or the agent has no settings.
                Raised before any model or tool request is made.
        """
        if not alert or not alert.strip():
            raise ConfigError("Alert text is empty")
        if self.settings is None:
            raise ConfigError("Agent settings are not configured")

        run_id = uuid.uuid4().hex
        demo = not self.settings.llm.has_credentials
        self.audit_logger.log_run_started(
            run_id, len(alert), self.settings.agent.max_steps, demo=demo
        )

        started = time.perf_counter()
        count = 0
        outcome = "incomplete"
        try:
            steps = self._demo_events(alert) if demo else self._loop(run_id, alert)
            async for event in steps:
                count += 1
                outcome = event.type.value
                self.audit_logger.log_step_event(run_id, event)
                yield event
        finally:
            self.audit_logger.log_run_finished(
                run_id, count, outcome, time.perf_counter() - started
            )

    async def _loop(self, run_id: str, alert: str) -> AsyncIterator[StepEvent]:
        settings = self.settings
        conversation = Conversation(
            build_system_prompt(self.mcp_client.allowed_tools()),
            build_user_prompt(alert),
        )
        max_steps = settings.agent.max_steps

        for step in range(1, max_steps + 1):
            try:
                raw = await self._call_model(run_id, step, conversation)
            except LLMError as e:
                self.logger.error(f"Model call failed at step {step}: {e}")
                yield StepEvent(type=StepEventType.ERROR, step=step, content=str(e))
                return

            parsed = parse_react_response(raw)
            yield StepEvent(type=StepEventType.THOUGHT, step=step, content=parsed.thought or raw)

            if parsed.action:
                yield StepEvent(
                    type=StepEventType.ACTION,
                    step=step,
                    action=parsed.action,
                    input=parsed.action_input,
                )

            decision = decide(parsed, settings.agent.auto_run)

            if decision is StepDecision.FINAL_ANSWER:
                yield StepEvent(type=StepEventType.FINAL, step=step, content=parsed.final_answer)
                return

            if decision is StepDecision.NO_ACTION:
                if settings.agent.no_action_policy is NoActionPolicy.WARNING:
                    yield StepEvent(
                        type=StepEventType.WARNING,
                        step=step,
                        content="The model proposed no action and gave no final answer.",
                    )
                else:
                    yield StepEvent(
                        type=StepEventType.FINAL, step=step, content=parsed.thought or raw
                    )
                return

            if decision is StepDecision.MANUAL:
                yield StepEvent(
                    type=StepEventType.PENDING,
                    step=step,
                    content=f"Auto-run is disabled; run '{parsed.action}' manually to continue.",
                )
                return

            try:
                observation = await self._execute_action(
                    run_id, step, parsed.action, parsed.action_input
                )
            except SecGuardError as e:
                self.logger.error(f"Action '{parsed.action}' failed at step {step}: {e}")
                yield StepEvent(type=StepEventType.ERROR, step=step, content=str(e))
                return

            observation_text = serialize_observation(observation)
            yield StepEvent(type=StepEventType.OBSERVATION, step=step, content=observation_text)
            conversation.append_observation(raw, observation_text)

        yield StepEvent(
            type=StepEventType.WARNING,
            step=max_steps,
            content=f"Step limit reached ({max_steps}) without a final answer.",
        )

    async def _call_model(self, run_id: str, step: int, conversation: Conversation) -> str:
        started = time.perf_counter()
        try:
            raw = await self.llm_client.chat(conversation.to_payload())
        except LLMError as e:
            self.audit_logger.log_llm_call(
                run_id, step, self.settings.llm.model, time.perf_counter() - started, error=e
            )
            raise
        self.audit_logger.log_llm_call(
            run_id, step, self.settings.llm.model, time.perf_counter() - started
        )
        return raw

    async def _execute_action(self, run_id: str, step: int, action: str, action_input: str) -> Any:
        """Dispatch one parsed action and return its raw observation."""
        arguments = safe_parse_json(action_input) if action_input.strip() else {}

        if action.startswith(MCP_ACTION_PREFIX):
            tool_name = action[len(MCP_ACTION_PREFIX):].strip()
            self._check_tool_policy(tool_name)

            started = time.perf_counter()
            self.audit_logger.log_tool_call_start(run_id, step, action)
            try:
                result = await self.mcp_client.invoke_tool(tool_name or None, arguments)
            except SecGuardError as e:
                self.audit_logger.log_tool_call_end(
                    run_id, step, action, time.perf_counter() - started, error=e
                )
                raise
            self.audit_logger.log_tool_call_end(
                run_id, step, action, time.perf_counter() - started
            )
            return result

        if action == REPORT_ACTION:
            return {
                "title": "Report draft",
                "summary": "This report was produced by the built-in report action.",
            }

        return {"status": "ignored", "action": action, "input": arguments}

    def _check_tool_policy(self, tool_name: str):
        if not self.settings.agent.strict_tool_policy:
            return
        resolved = self.mcp_client.resolve_tool_name(tool_name)
        if resolved and not self.mcp_client.is_tool_allowed(resolved):
            raise PolicyError(f"Tool '{resolved}' is not enabled on the active MCP server")

    async def _demo_events(self, alert: str) -> AsyncIterator[StepEvent]:
        yield StepEvent(type=StepEventType.THOUGHT, step=1, content=DEMO_THOUGHT)
        yield StepEvent(
            type=StepEventType.ACTION,
            step=1,
            action=DEMO_ACTION,
            input=json.dumps({"alert": alert}, ensure_ascii=False)[:400],
        )
        yield StepEvent(type=StepEventType.OBSERVATION, step=1, content=DEMO_OBSERVATION)
        yield StepEvent(type=StepEventType.FINAL, step=2, content=DEMO_FINAL)
