import asyncio

import pytest

from aura_agent import scripts
from aura_agent.app import AuraApp
from aura_agent.errors import AuraError, ProviderError
from aura_agent.pdf import PdfExtractionError
from aura_agent.providers.fallback import ProviderFallbackWrapper
from aura_agent.types import TextData

from helpers import FakeProvider, FakeSandbox, Messages


class _StaticPdf:
    def __init__(self, text: str | None) -> None:
        self.text = text

    async def extract_text(self, data: bytes) -> TextData:
        if self.text is None:
            raise PdfExtractionError("No extractable text found in the PDF.")
        return TextData(text=self.text, title="PDF document", word_count=len(self.text.split()))


def _app(remote: FakeProvider, local: FakeProvider, **kwargs) -> tuple[AuraApp, Messages]:
    providers = ProviderFallbackWrapper(
        {"simplification": remote, "simplification_local": local, "next_steps": FakeProvider()}
    )
    sink = Messages()
    return AuraApp(providers=providers, sink=sink, **kwargs), sink


def test_remote_failure_retries_whole_run_locally() -> None:
    remote = FakeProvider(name="openai:gpt-3.5-turbo", error=ProviderError("missing_api_key"))
    local = FakeProvider(["Easy words."], name="ollama:llama3.2")
    app, _ = _app(remote, local)
    statuses: list[str] = []

    result = asyncio.run(app.simplify(TextData(text="Hard words."), on_status=statuses.append))

    assert result is not None
    assert result.simplified_text == "Easy words."
    assert result.provider_used == "ollama:llama3.2"
    assert len(remote.calls) == 1 and len(local.calls) == 1
    assert any("local model" in status for status in statuses)


def test_local_only_run_skips_remote() -> None:
    remote = FakeProvider(["unused"])
    local = FakeProvider(["Easy."], name="ollama:llama3.2")
    app, _ = _app(remote, local)

    result = asyncio.run(app.simplify(TextData(text="Hard."), use_remote=False))

    assert result is not None
    assert remote.calls == []


def test_failure_everywhere_is_reported_not_raised() -> None:
    app, sink = _app(FakeProvider(error=ProviderError("down")), FakeProvider(error=ProviderError("also down")))

    assert asyncio.run(app.simplify(TextData(text="Hard words."))) is None
    assert sink.contains("❌ Simplification failed")


def test_refresh_abandons_run_in_flight() -> None:
    gate = asyncio.Event()
    app, sink = _app(FakeProvider(["late"], gate=gate), FakeProvider(["later"]))

    async def scenario():
        task = asyncio.create_task(app.simplify(TextData(text="Hard words.")))
        await asyncio.sleep(0)
        await app.refresh()
        gate.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert sink.items == []


def test_simplify_page_replaces_and_restore_brings_back_original() -> None:
    sandbox = FakeSandbox(
        {
            scripts.page_text_script(): {"text": "Complicated page text.", "title": "Help", "url": "https://x.test/"},
            scripts.read_body_html_script(): "<p>original</p>",
        },
        url="https://x.test/",
    )
    app, _ = _app(FakeProvider(["Simple page text."]), FakeProvider())
    app.attach_page(sandbox)

    async def scenario():
        result = await app.simplify_page()
        restored = await app.refresh()
        return result, restored

    result, restored = asyncio.run(scenario())

    assert result is not None and result.metadata.title == "Help"
    written = [script for script in sandbox.scripts if "document.body.innerHTML =" in script]
    assert len(written) == 2
    assert "Simple page text." in written[0]
    assert written[1] == scripts.write_body_html_script("<p>original</p>")
    assert restored


def test_simplify_paragraphs_uses_selected_model() -> None:
    long_paragraph = " ".join(["word"] * 60)
    sandbox = FakeSandbox(
        {
            scripts.paragraph_collect_script(): [
                {"index": 0, "text": long_paragraph},
                {"index": 1, "text": "Too short to bother."},
            ]
        }
    )
    local = FakeProvider(["Shorter paragraph."])
    app, _ = _app(FakeProvider(["unused"]), local)

    report = asyncio.run(app.simplify_paragraphs(sandbox, use_remote=False))

    assert (report.total, report.simplified, report.skipped) == (2, 1, 1)
    assert scripts.paragraph_write_script({0: "Shorter paragraph."}) in sandbox.scripts
    assert len(local.calls) == 1


def _paragraph_page() -> FakeSandbox:
    return FakeSandbox({scripts.paragraph_collect_script(): [{"index": 0, "text": " ".join(["word"] * 60)}]})


def test_refresh_abandons_paragraph_run_in_flight() -> None:
    gate = asyncio.Event()
    sandbox = _paragraph_page()
    app, _ = _app(FakeProvider(["Short."], gate=gate), FakeProvider())

    async def scenario():
        task = asyncio.create_task(app.simplify_paragraphs(sandbox))
        await asyncio.sleep(0)
        await app.refresh(sandbox)
        gate.set()
        return await task

    report = asyncio.run(scenario())

    assert report.discarded
    assert report.simplified == 0
    assert not any("const replacements" in script for script in sandbox.scripts)


def test_newer_paragraph_run_supersedes_older_one() -> None:
    gate = asyncio.Event()
    sandbox = _paragraph_page()
    remote = FakeProvider(["Old."], gate=gate)
    local = FakeProvider(["New."])
    app, _ = _app(remote, local)

    async def scenario():
        first = asyncio.create_task(app.simplify_paragraphs(sandbox))
        await asyncio.sleep(0)
        second = await app.simplify_paragraphs(sandbox, use_remote=False)
        gate.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first.discarded and not second.discarded
    writes = [script for script in sandbox.scripts if "const replacements" in script]
    assert writes == [scripts.paragraph_write_script({0: "New."})]


def test_pdf_simplification() -> None:
    app, sink = _app(FakeProvider(["Plain summary."]), FakeProvider(), pdf_extractor=_StaticPdf("Dense legal text."))

    result = asyncio.run(app.simplify_pdf(b"%PDF-1.7"))

    assert result is not None
    assert result.metadata.title == "PDF document"

    empty, empty_sink = _app(FakeProvider(), FakeProvider(), pdf_extractor=_StaticPdf(None))
    assert asyncio.run(empty.simplify_pdf(b"%PDF-1.7")) is None
    assert empty_sink.contains("No extractable text")


def test_voice_and_page_are_required_for_their_operations() -> None:
    app, _ = _app(FakeProvider(), FakeProvider())

    with pytest.raises(AuraError):
        asyncio.run(app.start_continuous_mode())
    with pytest.raises(AuraError):
        asyncio.run(app.send_message("hello"))
