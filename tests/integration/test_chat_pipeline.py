import asyncio

from aura_agent import scripts
from aura_agent.agent.chat import UNKNOWN_REPLY, ChatHandler
from aura_agent.agent.executor import CommandExecutor
from aura_agent.agent.router import IntentRouter
from aura_agent.config import AuraConfig
from aura_agent.forms.session import FormFiller
from aura_agent.obs.tracing import TraceStore
from aura_agent.providers.chat_models import UnavailableProvider
from aura_agent.providers.fallback import ProviderFallbackWrapper

from helpers import FakeProvider, FakeSandbox, Messages


class _MemorySink:
    def __init__(self) -> None:
        self.saved: list[tuple[str, object]] = []

    async def save(self, name: str, data: object) -> None:
        self.saved.append((name, data))


def _handler(providers: ProviderFallbackWrapper, sink: Messages, trace_store: TraceStore) -> ChatHandler:
    async def _no_sleep(seconds: float) -> None:
        return None

    executor = CommandExecutor(form_filler=FormFiller(), config=AuraConfig(), sleep=_no_sleep)
    return ChatHandler(router=IntentRouter(providers), executor=executor, sink=sink, trace_store=trace_store)


def test_action_falls_back_to_local_planner_and_executes_chain() -> None:
    local_planner = FakeProvider(
        [
            '```json\n[{"action": "click", "selector": "#missing"},'
            ' {"action": "fill", "selector": "#name", "value": "Bob"}]\n```'
        ],
        name="ollama:llama3.2",
    )
    persistence = _MemorySink()
    trace_store = TraceStore(sink=persistence)
    providers = ProviderFallbackWrapper(
        {
            "classification": FakeProvider(["action"]),
            "navigator": UnavailableProvider("openai:gpt-3.5-turbo", "missing_api_key"),
        },
        {"navigator": local_planner},
        trace_store=trace_store,
    )
    sandbox = FakeSandbox(
        {
            scripts.screen_context_script(): [{"tag": "input", "id": "name"}],
            scripts.click_script("#missing", 1500): {"ok": False},
            scripts.fill_script("#name", "Bob", 1500): {"ok": True},
        }
    )
    sink = Messages()
    handler = _handler(providers, sink, trace_store)

    async def scenario():
        outcome = await handler.send_message("fill my name in as Bob", sandbox)
        await trace_store.flush()
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome.intent == "action"
    assert [step.status for step in outcome.report.steps] == ["soft_failure", "ok"]
    assert sink.items[0] == ("fill my name in as Bob", "user")
    assert sink.contains('2. ✅ Filled #name with "Bob"')
    assert "RAW JSON" in local_planner.calls[0][-1]["content"]
    assert providers.last_provider("navigator") == "ollama:llama3.2"
    assert [name for name, _ in persistence.saved] == ["dom", "llm"]
    assert any(trace.fallback_reason == "missing_api_key" for trace in trace_store.list_recent())


def test_question_is_answered_from_page_text() -> None:
    chat = FakeProvider(["The office opens at 9am."])
    providers = ProviderFallbackWrapper({"classification": FakeProvider(["question"]), "chat": chat})
    sandbox = FakeSandbox({scripts.visible_text_script(): "Opening hours: 9am to 5pm."})
    sink = Messages()

    outcome = asyncio.run(_handler(providers, sink, TraceStore()).send_message("When do you open?", sandbox))

    assert outcome.answer == "The office opens at 9am."
    assert "Opening hours: 9am to 5pm." in chat.calls[0][0]["content"]
    assert sink.texts[1:] == ["Let me look that up for you...", "The office opens at 9am."]


def test_non_json_plan_is_shown_as_reply() -> None:
    providers = ProviderFallbackWrapper(
        {"classification": FakeProvider(["action"]), "navigator": FakeProvider(["There is nothing to click here."])}
    )
    sink = Messages()

    outcome = asyncio.run(_handler(providers, sink, TraceStore()).send_message("do something", FakeSandbox()))

    assert outcome.answer == "There is nothing to click here."
    assert outcome.report is None
    assert sink.texts[-1] == "There is nothing to click here."


def test_classifier_failure_yields_unknown_reply() -> None:
    providers = ProviderFallbackWrapper({"classification": FakeProvider(error=RuntimeError("offline"))})
    sink = Messages()

    outcome = asyncio.run(_handler(providers, sink, TraceStore()).send_message("hmm", FakeSandbox()))

    assert outcome.intent == "unknown"
    assert sink.texts[-1] == UNKNOWN_REPLY


def test_empty_plan_is_echoed_and_logged() -> None:
    persistence = _MemorySink()
    trace_store = TraceStore(sink=persistence)
    providers = ProviderFallbackWrapper(
        {"classification": FakeProvider(["action"]), "navigator": FakeProvider(["[]"])}
    )
    sink = Messages()
    handler = _handler(providers, sink, trace_store)

    async def scenario():
        outcome = await handler.send_message("do something", FakeSandbox())
        await trace_store.flush()
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome.report is None
    assert outcome.answer == "[]"
    assert sink.texts[-1] == "[]"
    assert persistence.saved == [("llm", "[]")]
