from aura_agent.agent.commands import (
    Click,
    Fill,
    InvalidCommand,
    MalformedCommand,
    SearchAndNavigate,
    Select,
    UnsupportedCommand,
    parse_command,
)
from aura_agent.agent.router import ParsedCommands, ParseError, PlainAnswer, normalize_intent, parse_commands


def test_single_object_becomes_one_command() -> None:
    result = parse_commands('{"action": "click", "selector": "#submit"}')

    assert isinstance(result, ParsedCommands)
    assert result.commands == [Click(selector="#submit")]


def test_array_preserves_order() -> None:
    raw = (
        '[{"action": "search_and_navigate", "topic": "motor tax"},'
        ' {"action": "fill", "selector": "#name", "value": "Bob"},'
        ' {"action": "select", "selector": "#county", "value": "Cork"}]'
    )

    result = parse_commands(raw)

    assert isinstance(result, ParsedCommands)
    assert result.commands == [
        SearchAndNavigate(topic="motor tax"),
        Fill(selector="#name", value="Bob"),
        Select(selector="#county", value="Cork"),
    ]


def test_code_fences_are_stripped() -> None:
    result = parse_commands('```json\n{"action": "start_form_filling"}\n```')

    assert isinstance(result, ParsedCommands)
    assert result.commands[0].action == "start_form_filling"


def test_non_json_is_plain_answer() -> None:
    result = parse_commands("I can't do that on this page.")

    assert isinstance(result, PlainAnswer)
    assert result.text == "I can't do that on this page."


def test_json_scalar_and_empty_array_are_parse_errors() -> None:
    assert isinstance(parse_commands("42"), ParseError)
    assert isinstance(parse_commands("[]"), ParseError)


def test_unknown_action_is_unsupported() -> None:
    command = parse_command({"action": "scroll", "amount": 3})

    assert isinstance(command, UnsupportedCommand)
    assert command.action == "scroll"


def test_missing_fields_and_non_objects() -> None:
    invalid = parse_command({"action": "click"})
    malformed = parse_command("click #submit")
    no_action = parse_command({"selector": "#x"})

    assert isinstance(invalid, InvalidCommand)
    assert "selector" in invalid.reason
    assert isinstance(malformed, MalformedCommand)
    assert malformed.reason == "Invalid command object"
    assert isinstance(no_action, MalformedCommand)
    assert no_action.reason == "Missing action"


def test_numeric_values_are_coerced_to_text() -> None:
    command = parse_command({"action": "fill", "selector": "#age", "value": 42})

    assert command == Fill(selector="#age", value="42")


def test_intent_normalization() -> None:
    assert normalize_intent(" Action ") == "action"
    assert normalize_intent("This is a question.") == "question"
    assert normalize_intent("no idea") == "unknown"
