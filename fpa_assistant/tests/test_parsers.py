"""
Tests for the command parsers.

Tests cover:
- Rule-based recognition of every intent
- Update value extraction ("set X for fpa N to V")
- List filters (status, landowner type, same landowner, all)
- AI parser payload mapping and error reporting
- Fallback composition and the unavailable-AI advisory
"""

import pytest

from conftest import ExceptionLLM, HangingLLM, ScriptedLLM

from fpa_assistant.agent.language_service import LanguageService
from fpa_assistant.agent.parsers import (
    AICommandParser,
    FallbackCommandParser,
    RuleBasedCommandParser,
    build_command_parser,
    detect_field,
    extract_update_value,
    is_create_request,
)
from fpa_assistant.core.schema import Intent, View


@pytest.fixture
def rules():
    return RuleBasedCommandParser()


def ai_parser(llm, timeout: float = 5.0) -> AICommandParser:
    return AICommandParser(LanguageService(llm, timeout_seconds=timeout))


# --- Helpers ---


class TestHelpers:
    """Tests for the module-level keyword helpers."""

    def test_create_request(self):
        assert is_create_request("add fpa 2024-777")
        assert is_create_request("Create a new FPA")
        assert not is_create_request("add a note to fpa 500")

    def test_detect_field_prefers_specific_phrase(self):
        assert detect_field("change the landowner type") == "landowner_type"
        assert detect_field("change the landowner") == "landowner"
        assert detect_field("what is the timber sale name") == "timber_sale_name"
        assert detect_field("nothing here") is None

    def test_update_value_with_leading_target(self):
        assert extract_update_value("landowner", "set the landowner for fpa 500 to Jane Doe") == "Jane Doe"

    def test_update_value_from_to(self):
        text = "change status of fpa 500 from approved to withdrawn"
        assert extract_update_value("application_status", text) == "Withdrawn"

    def test_update_value_missing(self):
        assert extract_update_value("landowner", "change the landowner for fpa 500") is None


# --- Rule-based parser ---


class TestRuleBasedParser:
    """Tests for deterministic command recognition."""

    def test_empty(self, rules, records):
        assert rules.parse_text("   ", records).intent == Intent.UNKNOWN

    def test_create(self, rules, records):
        command = rules.parse_text("add fpa 2024-777", records)
        assert command.intent == Intent.CREATE
        assert command.entity_id == "2024-777"
        assert command.source == "rules"

    def test_update_status(self, rules, records):
        command = rules.parse_text("change status for fpa 500 to approved", records)
        assert command.intent == Intent.UPDATE
        assert command.entity_id == "500"
        assert command.fields == {"application_status": "Approved"}
        assert command.target_field is None

    def test_update_named_field(self, rules, records):
        command = rules.parse_text("set the landowner for fpa 500 to Jane Doe", records)
        assert command.intent == Intent.UPDATE
        assert command.fields == {"landowner": "Jane Doe"}

    def test_update_field_without_value(self, rules, records):
        command = rules.parse_text("change the landowner for fpa 500", records)
        assert command.intent == Intent.UPDATE
        assert command.entity_id == "500"
        assert command.target_field == "landowner"
        assert "landowner" not in command.fields

    def test_mark_as_status(self, rules, records):
        command = rules.parse_text("mark fpa 500 as approved", records)
        assert command.intent == Intent.UPDATE
        assert command.fields == {"application_status": "Approved"}

    def test_delete(self, rules, records):
        command = rules.parse_text("delete fpa 731", records)
        assert command.intent == Intent.DELETE
        assert command.entity_id == "731"

    def test_delete_unknown_number(self, rules, records):
        command = rules.parse_text("delete fpa 999", records)
        assert command.intent == Intent.DELETE
        assert command.entity_id == "999"

    def test_view(self, rules, records):
        command = rules.parse_text("open fpa 500", records)
        assert command.intent == Intent.VIEW
        assert command.entity_id == "500"

    def test_comment(self, rules, records):
        command = rules.parse_text("add a note to fpa 500: landowner called back", records)
        assert command.intent == Intent.COMMENT
        assert command.entity_id == "500"
        assert command.fields == {"notes": "Landowner called back"}

    def test_help(self, rules, records):
        assert rules.parse_text("help", records).intent == Intent.HELP

    def test_question(self, rules, records):
        command = rules.parse_text("what is the landowner for fpa 500?", records)
        assert command.intent == Intent.QUESTION
        assert command.entity_id == "500"
        assert command.target_field == "landowner"

    def test_reports(self, rules, records):
        command = rules.parse_text("show reports", records)
        assert command.intent == Intent.NAVIGATE
        assert command.view == View.REPORTS

    def test_dashboard(self, rules, records):
        command = rules.parse_text("go to the dashboard", records)
        assert command.intent == Intent.NAVIGATE
        assert command.view == View.DASHBOARD

    def test_summary(self, rules, records):
        command = rules.parse_text("give me a summary", records)
        assert command.intent == Intent.SUMMARY
        assert command.fields == {}

    def test_summary_with_status(self, rules, records):
        command = rules.parse_text("how many approved fpas", records)
        assert command.intent == Intent.SUMMARY
        assert command.fields == {"application_status": "Approved"}

    def test_unrecognized_is_question(self, rules, records):
        command = rules.parse_text("tell me a joke", records)
        assert command.intent == Intent.QUESTION
        assert command.target_field is None


class TestRuleBasedListFilters:
    """Tests for list filter recognition."""

    def test_status_filter(self, rules, records):
        command = rules.parse_text("show approved fpas", records)
        assert command.intent == Intent.LIST
        assert command.list_filter.type == "status"
        assert command.list_filter.value == "Approved"
        assert command.list_filter.label == "Approved FPAs"

    def test_landowner_type_filter(self, rules, records):
        command = rules.parse_text("list small landowner fpas", records)
        assert command.list_filter.type == "landowner_type"
        assert command.list_filter.value == "Small"

    def test_all(self, rules, records):
        command = rules.parse_text("show all fpas", records)
        assert command.list_filter.type == "all"
        assert command.list_filter.label == "All FPAs"

    def test_same_landowner(self, rules, records):
        command = rules.parse_text("show fpas with the same landowner as 500", records)
        assert command.intent == Intent.LIST
        assert command.list_filter.type == "landowner"
        assert command.list_filter.value == "John Doe"
        assert command.list_filter.label == "Landowner: John Doe"


# --- AI parser ---


class TestAICommandParser:
    """Tests for the structured AI parse."""

    @pytest.mark.asyncio
    async def test_maps_payload(self, records):
        llm = ScriptedLLM([
            {
                "intent": "update",
                "fpa_number": 500,
                "fields": {"applicationStatus": "Approved", "landowner": None},
                "response": "Updating FPA 500.",
            }
        ])
        command = await ai_parser(llm).parse("approve 500 please", records)

        assert command.intent == Intent.UPDATE
        assert command.entity_id == "500"
        assert command.fields == {"application_status": "Approved"}
        assert command.response == "Updating FPA 500."
        assert command.source == "ai"

    @pytest.mark.asyncio
    async def test_prompt_lists_known_identifiers(self, records):
        llm = ScriptedLLM([{"intent": "unknown"}])
        await ai_parser(llm).parse("hello", records)
        system_prompt = llm.calls[0][0].content
        assert "2024-256" in system_prompt

    @pytest.mark.asyncio
    async def test_list_filter_from_fields(self, records):
        llm = ScriptedLLM([{"intent": "list", "fields": {"landowner_type": "Large"}}])
        command = await ai_parser(llm).parse("big landowners", records)
        assert command.intent == Intent.LIST
        assert command.list_filter.type == "landowner_type"
        assert command.list_filter.value == "Large"

    @pytest.mark.asyncio
    async def test_navigate_defaults_to_dashboard(self, records):
        llm = ScriptedLLM([{"intent": "navigate"}])
        command = await ai_parser(llm).parse("take me home", records)
        assert command.view == View.DASHBOARD

    @pytest.mark.asyncio
    async def test_cleans_names(self, records):
        llm = ScriptedLLM([
            {"intent": "create", "fpa_number": "#900", "fields": {"landowner": "named Ann Lee"}}
        ])
        command = await ai_parser(llm).parse("new one 900 for Ann Lee", records)
        assert command.entity_id == "900"
        assert command.fields == {"landowner": "Ann Lee"}

    @pytest.mark.asyncio
    async def test_service_failure_sets_error(self, records):
        llm = ExceptionLLM()
        command = await ai_parser(llm).parse("delete fpa 731", records)
        assert command.intent == Intent.UNKNOWN
        assert command.error
        assert llm.call_count == 2

    @pytest.mark.asyncio
    async def test_invalid_payload_sets_error(self, records):
        llm = ScriptedLLM([{"intent": "fly", "fields": {}}])
        command = await ai_parser(llm).parse("delete fpa 731", records)
        assert command.error == "AI response was not understood"

    @pytest.mark.asyncio
    async def test_timeout_sets_error(self, records):
        llm = HangingLLM()
        command = await ai_parser(llm, timeout=0.05).parse("delete fpa 731", records)
        assert command.intent == Intent.UNKNOWN
        assert command.error
        assert llm.call_count == 1


# --- Fallback composition ---


class TestFallbackCommandParser:
    """Tests for AI-then-rules composition."""

    @pytest.mark.asyncio
    async def test_ai_result_used(self, records):
        llm = ScriptedLLM([{"intent": "delete", "fpa_number": "731"}])
        parser = build_command_parser(LanguageService(llm))
        command = await parser.parse("get rid of 731", records)
        assert command.intent == Intent.DELETE
        assert command.source == "ai"
        assert command.advisory is None

    @pytest.mark.asyncio
    async def test_error_falls_back_with_advisory(self, records):
        parser = build_command_parser(LanguageService(ExceptionLLM()))
        command = await parser.parse("delete fpa 731", records)
        assert command.intent == Intent.DELETE
        assert command.entity_id == "731"
        assert command.source == "rules"
        assert command.advisory == "AI assistant unavailable, using built-in commands."

    @pytest.mark.asyncio
    async def test_unknown_falls_back_silently(self, records):
        parser = build_command_parser(LanguageService(ScriptedLLM([{"intent": "unknown"}])))
        command = await parser.parse("delete fpa 731", records)
        assert command.intent == Intent.DELETE
        assert command.advisory is None

    def test_no_service_is_rule_based(self):
        assert isinstance(build_command_parser(None), RuleBasedCommandParser)

    def test_service_builds_fallback(self):
        parser = build_command_parser(LanguageService(ScriptedLLM([])))
        assert isinstance(parser, FallbackCommandParser)
        assert isinstance(parser.primary, AICommandParser)
