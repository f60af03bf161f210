"""Unit tests for the inference orchestrator."""

import pytest

from callflow_core.actions import ActionStatus, ActionSupervisor, LocalActionRunner
from callflow_core.disambiguation import DisambiguationOutcome, DisambiguationWorkflow
from callflow_core.inference import InferenceOrchestrator, TurnInput, update_state
from callflow_core.rules import (
    ReferenceCatalog,
    ReferenceNotFoundError,
    RuleSetExhaustedError,
    RuleSetNotFoundError,
)

from tests.conftest import DIALLED_NUMBER, LANDLINE_NUMBER, MOBILE_NUMBER


def turn(session_id, customer_address=MOBILE_NUMBER, trigger_input=DIALLED_NUMBER) -> TurnInput:
    return TurnInput(
        session_id=session_id,
        trigger_input=trigger_input,
        customer_address=customer_address,
    )


class TestFirstTurn:
    """Tests for a session's first turn."""

    @pytest.mark.asyncio
    async def test_greeting_selected(self, orchestrator, session_id):
        """Test the highest priority rule fires and is exported."""
        result = await orchestrator.process_turn(turn(session_id))

        assert result.rule_set == "Main"
        assert result.rule == "Greeting"
        assert result.action_type == "Message"
        assert result.disambiguation == DisambiguationOutcome.RESOLVED
        assert result.state["CurrentRule"] == "Greeting"
        assert result.state["CurrentRuleSet"] == "Main"
        assert result.state["CurrentRule_message"] == "Welcome Jane"
        assert result.state["CurrentRule_nextFlowArn"] == "arn:flow/Message"

    @pytest.mark.asyncio
    async def test_session_context_persisted(self, orchestrator, store, session_id):
        """Test System, caller and customer details are stored."""
        await orchestrator.process_turn(turn(session_id))

        state = await store.load(session_id)

        assert state["System"]["DialledNumber"] == DIALLED_NUMBER
        assert state["System"]["Holiday"] == "true"
        assert state["System"]["TimeOfDay"] == "morning"
        assert state["CustomerPhoneNumber"] == MOBILE_NUMBER
        assert state["OriginalCustomerNumber"] == MOBILE_NUMBER
        assert state["Customer"]["AccountNumber"] == "1001"

    @pytest.mark.asyncio
    async def test_projection_excludes_structures(self, orchestrator, session_id):
        """Test only string attributes are returned to the flow."""
        result = await orchestrator.process_turn(turn(session_id))

        assert "System" not in result.state
        assert "Customer" not in result.state
        assert "Accounts" not in result.state

    @pytest.mark.asyncio
    async def test_withheld_caller(self, orchestrator, store, session_id):
        """Test a turn without a caller address still selects a rule."""
        result = await orchestrator.process_turn(turn(session_id, customer_address=None))

        assert result.rule == "Greeting"
        assert result.disambiguation == DisambiguationOutcome.AWAITING_ALTERNATE
        assert result.state["CurrentRule_message"] == "Welcome "
        assert result.state["AccountDisambiguate"] == "PhoneNumber"

    @pytest.mark.asyncio
    async def test_unknown_dialled_number(self, orchestrator, store, session_id):
        """Test nothing is persisted when no rule set matches."""
        with pytest.raises(RuleSetNotFoundError):
            await orchestrator.process_turn(turn(session_id, trigger_input="+61200000001"))

        assert await store.load(session_id) == {}

    @pytest.mark.asyncio
    async def test_missing_flow_reference(self, store, cache, directory, session_id):
        """Test an unresolvable next flow fails the turn."""
        orchestrator = InferenceOrchestrator(
            store=store,
            cache=cache,
            references=ReferenceCatalog(),
            disambiguation=DisambiguationWorkflow(directory),
        )

        with pytest.raises(ReferenceNotFoundError, match="RulesEngineMessage"):
            await orchestrator.process_turn(turn(session_id))


class TestSubsequentTurns:
    """Tests for walking a rule set across turns."""

    @pytest.mark.asyncio
    async def test_walk_rule_set(self, orchestrator, store, session_id):
        """Test each turn resumes after the previous rule."""
        await orchestrator.process_turn(turn(session_id))

        second = await orchestrator.process_turn(turn(session_id))
        assert second.rule == "MobileOffer"
        assert second.state["CurrentRule_messageType"] == "ssml"
        assert second.state["CurrentRule_nextFlowArn"] == "arn:flow/SMS"

        third = await orchestrator.process_turn(turn(session_id))
        assert third.rule == "Queue"
        assert third.state["CurrentRule_queueId"] == "q-sales"
        assert third.state["CurrentRule_queueArn"] == "arn:queue/q-sales"
        assert third.state["CurrentRule_messageType"] == "prompt"
        assert third.state["CurrentRule_messagePromptArn"] == "arn:prompt/p-hold"

        with pytest.raises(RuleSetExhaustedError):
            await orchestrator.process_turn(turn(session_id))

        assert (await store.load(session_id))["CurrentRule"] == "Queue"

    @pytest.mark.asyncio
    async def test_step_context_replaced(self, orchestrator, session_id):
        """Test scratch keys from the previous rule do not leak."""
        await orchestrator.process_turn(turn(session_id))
        await orchestrator.process_turn(turn(session_id))

        third = await orchestrator.process_turn(turn(session_id))

        assert third.state["CurrentRule_message"] == "prompt:Hold"
        assert not any(key.startswith("CurrentRule_function") for key in third.state)

    @pytest.mark.asyncio
    async def test_only_changed_keys_written(self, orchestrator, session_id):
        """Test later turns write only the attributes that changed."""
        await orchestrator.process_turn(turn(session_id))

        second = await orchestrator.process_turn(turn(session_id))

        assert "System" not in second.written_keys
        assert "CurrentRuleSet" not in second.written_keys
        assert "Customer" not in second.written_keys
        assert "CurrentRule" in second.written_keys
        assert "CurrentRule_messageType" in second.written_keys

    @pytest.mark.asyncio
    async def test_landline_skips_mobile_rule(self, orchestrator, session_id):
        """Test a rule whose conditions fail is passed over."""
        first = await orchestrator.process_turn(turn(session_id, customer_address=LANDLINE_NUMBER))
        assert first.disambiguation == DisambiguationOutcome.AWAITING_DISCRIMINATOR
        assert first.state["AccountDisambiguate"] == "PostCode"

        second = await orchestrator.process_turn(turn(session_id, customer_address=LANDLINE_NUMBER))

        assert second.rule == "Queue"

    @pytest.mark.asyncio
    async def test_discriminator_resolves_customer(self, orchestrator, store, session_id):
        """Test a collected post code binds the customer on the next turn."""
        await orchestrator.process_turn(turn(session_id, customer_address=LANDLINE_NUMBER))
        await update_state(store, session_id, {"key1": "PostCode", "value1": "2010"})

        result = await orchestrator.process_turn(turn(session_id, customer_address=LANDLINE_NUMBER))

        assert result.disambiguation == DisambiguationOutcome.RESOLVED
        assert (await store.load(session_id))["Customer"]["FirstName"] == "John"


class TestRuleSetNavigation:
    """Tests for switching rule sets."""

    @pytest.mark.asyncio
    async def test_next_rule_set(self, orchestrator, store, session_id):
        """Test a NextRuleSet directive starts the named rule set."""
        await orchestrator.process_turn(turn(session_id))
        await update_state(store, session_id, {"key1": "NextRuleSet", "value1": "Billing"})

        result = await orchestrator.process_turn(turn(session_id))

        assert result.rule_set == "Billing"
        assert result.rule == "Balance"
        assert result.state["CurrentRuleSet"] == "Billing"
        assert result.state["CurrentRule_functionArn"] == "arn:function/dev-callflow-Balance"
        assert result.state["CurrentRule_functionTimeout"] == "5"
        assert result.state["CurrentRule_functionOutputKey"] == "BalanceResult"
        assert result.state["CurrentRule_nextFlowArn"] == "arn:flow/Integration"
        assert "NextRuleSet" not in result.state
        assert "CurrentRule_message" not in result.state

    @pytest.mark.asyncio
    async def test_integration_rule_drives_action(self, orchestrator, store, session_id, clock):
        """Test an exported integration rule can be started and completed."""
        await orchestrator.process_turn(turn(session_id))
        await update_state(store, session_id, {"key1": "NextRuleSet", "value1": "Billing"})
        await orchestrator.process_turn(turn(session_id))

        calls = []

        async def balance(payload):
            calls.append(payload)

        runner = LocalActionRunner({"arn:function/dev-callflow-Balance": balance})
        supervisor = ActionSupervisor(store, runner, clock=clock)

        assert await supervisor.start(session_id) == ActionStatus.START
        await runner.drain()
        assert await supervisor.complete(session_id, {"Amount": "1234"}) is True

        state = await store.load(session_id)
        assert calls == [{"ContactId": session_id}]
        assert state["BalanceResult"] == {"Amount": "1234"}
        assert state["IntegrationStatus"] == "DONE"

        bail = await orchestrator.process_turn(turn(session_id))
        assert bail.rule == "Bail"
        assert bail.state["CurrentRule_ruleSetName"] == "Main"
