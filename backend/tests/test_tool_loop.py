"""
Unit tests for the ToolInvocationLoop.

The provider is scripted (see ScriptedLLM in conftest) and the report API
is a MockTransport, so each test controls exactly what every model step
returns.
"""
import pytest

from restaurant_assistant.services.message_divider import MESSAGE_SEPARATOR
from restaurant_assistant.services.report_tools import ANALYZE_RESTAURANT_DATA
from restaurant_assistant.services.tool_loop import CompletionProviderError, ToolInvocationLoop

from conftest import ScriptedLLM, analysis_input, text_step, tool_step, user


async def _collect(loop: ToolInvocationLoop, messages=None) -> str:
    chunks = []
    async for chunk in loop.run(messages or [user("How many orders today?")], "conv_test"):
        chunks.append(chunk)
    return "".join(chunks)


@pytest.fixture
def make_loop(report_tool_service):
    def factory(steps, **kwargs):
        llm = ScriptedLLM(steps)
        loop = ToolInvocationLoop(
            llm=llm,
            tools=report_tool_service,
            model="gpt-4.1-mini",
            system_prompt="You are a test assistant.",
            **kwargs,
        )
        return loop, llm

    return factory


class TestStepPolicy:
    """Tests for tool choice and retries per step."""

    @pytest.mark.asyncio
    async def test_first_step_required_then_auto(self, make_loop):
        loop, llm = make_loop([
            tool_step(analysis_input({"type": "1d"}, orders=True)),
            text_step("You had ", "42 orders today."),
        ])

        text = await _collect(loop)

        assert text == "You had 42 orders today."
        assert [call["tool_choice"] for call in llm.calls] == ["required", "auto"]

    @pytest.mark.asyncio
    async def test_retries_on_every_step(self, make_loop):
        loop, llm = make_loop(
            [tool_step(analysis_input(store=True)), text_step("Ok.")],
            max_retries=3,
        )

        await _collect(loop)

        assert [call["max_retries"] for call in llm.calls] == [3, 3]

    @pytest.mark.asyncio
    async def test_provider_receives_tool_schema_and_prompt(self, make_loop):
        loop, llm = make_loop([text_step("Hi.")])

        await _collect(loop)

        call = llm.calls[0]
        assert [tool["name"] for tool in call["tools"]] == [ANALYZE_RESTAURANT_DATA]
        assert "timeFilter" in call["tools"][0]["input_schema"]["properties"]
        assert call["system_prompt"] == "You are a test assistant."
        assert call["model"] == "gpt-4.1-mini"
        assert call["messages"] == [{"role": "user", "content": "How many orders today?"}]

    def test_default_system_prompt_asks_for_separator(self):
        loop = ToolInvocationLoop(llm=ScriptedLLM([]))
        assert MESSAGE_SEPARATOR.strip() in loop.system_prompt


class TestToolExecution:
    """Tests for feeding tool results back to the model."""

    @pytest.mark.asyncio
    async def test_tool_results_appended_to_context(self, make_loop):
        loop, llm = make_loop([
            tool_step(analysis_input(orders=True), step_id="a"),
            text_step("Done."),
        ])

        await _collect(loop)

        second_messages = llm.calls[1]["messages"]
        assert len(second_messages) == 3

        assistant_turn = second_messages[1]
        assert assistant_turn["role"] == "assistant"
        assert assistant_turn["content"][0]["type"] == "tool_use"
        assert assistant_turn["content"][0]["id"] == "call_a_0"

        result_turn = second_messages[2]
        assert result_turn["role"] == "user"
        result = result_turn["content"][0]
        assert result["type"] == "tool_result"
        assert result["tool_use_id"] == "call_a_0"
        assert result["is_error"] is False
        assert "=== ORDERS DATA ===" in result["content"]
        assert '"total": 42' in result["content"]

    @pytest.mark.asyncio
    async def test_no_domains_selected_result(self, make_loop, report_requests):
        loop, llm = make_loop([tool_step(analysis_input()), text_step("Nothing to fetch.")])

        await _collect(loop)

        result = llm.calls[1]["messages"][2]["content"][0]
        assert result["content"] == "No APIs were selected for data retrieval."
        assert report_requests == []

    @pytest.mark.asyncio
    async def test_invalid_tool_input_reported_to_model(self, make_loop):
        loop, llm = make_loop([tool_step({"orders": "yes please"}), text_step("Sorry.")])

        text = await _collect(loop)

        result = llm.calls[1]["messages"][2]["content"][0]
        assert result["is_error"] is True
        assert result["content"].startswith(f"Error: Invalid input for tool '{ANALYZE_RESTAURANT_DATA}'")
        assert text == "Sorry."

    @pytest.mark.asyncio
    async def test_parallel_calls_in_one_step(self, make_loop):
        loop, llm = make_loop([
            tool_step(analysis_input(orders=True), analysis_input(store=True)),
            text_step("Both fetched."),
        ])

        await _collect(loop)

        results = llm.calls[1]["messages"][2]["content"]
        assert [r["tool_use_id"] for r in results] == ["call_s_0", "call_s_1"]
        assert "=== ORDERS DATA ===" in results[0]["content"]
        assert "=== STORE DATA ===" in results[1]["content"]


class TestStopConditions:
    """Tests for when the loop ends."""

    @pytest.mark.asyncio
    async def test_stops_when_tool_budget_exceeded(self, make_loop):
        steps = [
            tool_step(analysis_input(orders=True), step_id="1"),
            tool_step(analysis_input(menu=True), step_id="2"),
            tool_step(analysis_input(store=True), step_id="3"),
            text_step("never reached"),
        ]
        loop, llm = make_loop(steps, max_tool_calls=2)

        text = await _collect(loop)

        # Third call pushes the total over the limit; no fourth step
        assert len(llm.calls) == 3
        assert len(llm.steps) == 1
        assert text == ""

    @pytest.mark.asyncio
    async def test_single_step_over_budget_stops(self, make_loop):
        loop, llm = make_loop(
            [tool_step(analysis_input(orders=True), analysis_input(menu=True), analysis_input(store=True))],
            max_tool_calls=2,
        )

        await _collect(loop)

        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_budget_reached_but_not_exceeded_continues(self, make_loop):
        loop, llm = make_loop(
            [
                tool_step(analysis_input(orders=True), analysis_input(menu=True)),
                text_step("Here is the summary."),
            ],
            max_tool_calls=2,
        )

        text = await _collect(loop)

        assert len(llm.calls) == 2
        assert text == "Here is the summary."

    @pytest.mark.asyncio
    async def test_step_bound(self, make_loop):
        steps = [tool_step(analysis_input(store=True), step_id=str(i)) for i in range(4)]
        loop, llm = make_loop(steps, max_tool_calls=10, max_steps=3)

        await _collect(loop)

        assert len(llm.calls) == 3

    @pytest.mark.asyncio
    async def test_answer_without_tool_call_ends_loop(self, make_loop):
        loop, llm = make_loop([text_step("Direct answer."), text_step("unused")])

        text = await _collect(loop)

        assert text == "Direct answer."
        assert len(llm.calls) == 1


class TestStreaming:
    """Tests for the text handed to the caller."""

    @pytest.mark.asyncio
    async def test_separator_between_steps_with_text(self, make_loop):
        loop, _ = make_loop([
            tool_step(analysis_input(orders=True), text="Let me check the orders."),
            text_step("You had 42 orders today."),
        ])

        text = await _collect(loop)

        assert text == f"Let me check the orders.{MESSAGE_SEPARATOR}You had 42 orders today."

    @pytest.mark.asyncio
    async def test_no_separator_when_first_step_silent(self, make_loop):
        loop, _ = make_loop([
            tool_step(analysis_input(orders=True)),
            text_step("You had 42 orders today."),
        ])

        assert MESSAGE_SEPARATOR not in await _collect(loop)

    @pytest.mark.asyncio
    async def test_empty_tokens_skipped(self, make_loop):
        loop, _ = make_loop([text_step("", "Hello", "")])

        chunks = [chunk async for chunk in loop.run([user("hi")], "conv_test")]

        assert chunks == ["Hello"]

    @pytest.mark.asyncio
    async def test_provider_error_raises(self, make_loop):
        loop, _ = make_loop([[{"type": "start"}, {"type": "error", "error": "Rate limit exceeded"}]])

        with pytest.raises(CompletionProviderError, match="Rate limit exceeded"):
            await _collect(loop)

    @pytest.mark.asyncio
    async def test_provider_error_after_text(self, make_loop):
        loop, _ = make_loop([
            tool_step(analysis_input(orders=True), text="Checking."),
            [{"type": "start"}, {"type": "error", "error": "Connection reset"}],
        ])

        chunks = []
        with pytest.raises(CompletionProviderError):
            async for chunk in loop.run([user("q")], "conv_test"):
                chunks.append(chunk)

        assert chunks == ["Checking."]
