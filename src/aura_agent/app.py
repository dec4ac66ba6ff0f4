"""Application context that owns and wires the assistant's stateful components."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from aura_agent.agent.chat import ChatHandler, ChatOutcome
from aura_agent.agent.executor import CommandExecutor
from aura_agent.agent.router import IntentRouter
from aura_agent.agent.suggestions import NextStepSuggester
from aura_agent.config import AuraConfig
from aura_agent.errors import AuraError, SimplificationError
from aura_agent.forms.session import FormFiller
from aura_agent.lifecycle.tracker import RequestTracker
from aura_agent.obs.tracing import PersistenceSink, TraceStore
from aura_agent.pdf import PdfExtractor, PypdfExtractor
from aura_agent.providers.fallback import ProviderFallbackWrapper
from aura_agent.sandbox import PageSandbox
from aura_agent.simplify.page import ParagraphReport, PageTextReplacer, ParagraphSimplifier, render_result_html
from aura_agent.simplify.pipeline import ProgressCallback, SimplificationPipeline, StatusCallback
from aura_agent.types import MessageSink, SimplificationOptions, SimplificationResult, TextData, VoiceSessionState
from aura_agent.voice.audio import Microphone, Transcriber
from aura_agent.voice.controller import VoiceController

LOGGER = logging.getLogger(__name__)

Options = Mapping[str, Any] | SimplificationOptions | None


def _log_sink(text: str, sender: str) -> None:
    LOGGER.info("[%s] %s", sender, text)


class AuraApp:
    """Creates exactly one of each stateful component and injects them.

    The simplification `RequestTracker`, the `FormFiller` and the
    `VoiceController` live here rather than in module globals, so their
    single-instance rules follow from ownership.
    """

    def __init__(
        self,
        *,
        config: AuraConfig | None = None,
        providers: ProviderFallbackWrapper | None = None,
        sink: MessageSink | None = None,
        persistence: PersistenceSink | None = None,
        microphone: Microphone | None = None,
        transcriber: Transcriber | None = None,
        pdf_extractor: PdfExtractor | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or AuraConfig()
        self.sink: MessageSink = sink or _log_sink
        self.trace_store = TraceStore(sink=persistence)
        self.providers = providers or ProviderFallbackWrapper.from_config(
            self.config, environ=environ, trace_store=self.trace_store
        )
        self.sandbox: PageSandbox | None = None

        self.simplification_tracker = RequestTracker("simplification")
        self.pipeline = SimplificationPipeline(self.simplification_tracker, config=self.config)
        self.page = PageTextReplacer()
        self.paragraphs = ParagraphSimplifier(self.simplification_tracker, self.config.simplification)
        self.pdf_extractor: PdfExtractor = pdf_extractor or PypdfExtractor()

        self.form_filler = FormFiller(self.config.phrases, highlight_ms=self.config.executor.highlight_ms)
        self.router = IntentRouter(self.providers)
        self.executor = CommandExecutor(
            form_filler=self.form_filler,
            suggester=NextStepSuggester(self.providers.provider_for("next_steps"), self.config.executor),
            config=self.config,
        )
        self.chat = ChatHandler(
            router=self.router,
            executor=self.executor,
            sink=self.sink,
            trace_store=self.trace_store,
        )

        self.voice: VoiceController | None = None
        if microphone is not None and transcriber is not None:
            self.voice = VoiceController(
                microphone=microphone,
                transcriber=transcriber,
                chat=self.chat,
                form_filler=self.form_filler,
                sink=self.sink,
                config=self.config,
            )

    def attach_page(self, sandbox: PageSandbox) -> None:
        self.sandbox = sandbox
        if self.voice is not None:
            self.voice.sandbox = sandbox

    async def simplify(
        self,
        text_data: TextData,
        options: Options = None,
        *,
        use_remote: bool = True,
        on_progress: ProgressCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> SimplificationResult | None:
        """Start a new simplification run, superseding any run in flight.

        With `use_remote`, a failed remote run is retried once, in full, on
        the local model. Returns None when the run was superseded or failed;
        failures are reported through the message sink.
        """

        token = self.simplification_tracker.issue_token()
        settings = self.config.simplification
        local = self.providers.provider_for(settings.local_feature)
        if use_remote:
            remote = self.providers.provider_for(settings.remote_feature, allow_fallback=False)
            try:
                return await self.pipeline.simplify(
                    text_data, options, token, remote, on_progress=on_progress, on_status=on_status
                )
            except SimplificationError as exc:
                if not self.simplification_tracker.is_current(token):
                    return None
                LOGGER.warning("Remote simplification failed, retrying locally: %s", exc)
                if on_status is not None:
                    on_status("Remote model unavailable. Retrying with the local model...")

        try:
            return await self.pipeline.simplify(
                text_data, options, token, local, on_progress=on_progress, on_status=on_status
            )
        except SimplificationError as exc:
            if not self.simplification_tracker.is_current(token):
                return None
            LOGGER.error("Simplification failed: %s", exc)
            self.sink(f"❌ Simplification failed: {exc}", "assistant")
            return None

    async def simplify_page(
        self,
        sandbox: PageSandbox | None = None,
        options: Options = None,
        *,
        use_remote: bool = True,
        replace_page: bool = True,
        on_progress: ProgressCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> SimplificationResult | None:
        page = self._require_sandbox(sandbox)
        try:
            text_data = await self.page.extract(page)
        except AuraError as exc:
            self.sink(f"❌ {exc}", "assistant")
            return None

        result = await self.simplify(
            text_data, options, use_remote=use_remote, on_progress=on_progress, on_status=on_status
        )
        if result is not None and replace_page:
            await self.page.replace(page, render_result_html(result))
        return result

    async def simplify_paragraphs(
        self,
        sandbox: PageSandbox | None = None,
        options: Options = None,
        *,
        use_remote: bool = True,
    ) -> ParagraphReport:
        """Simplify paragraphs in place; supersedes, and is superseded by, any other simplification."""

        page = self._require_sandbox(sandbox)
        token = self.simplification_tracker.issue_token()
        settings = self.config.simplification
        feature = settings.remote_feature if use_remote else settings.local_feature
        return await self.paragraphs.simplify_in_place(page, options, token, self.providers.provider_for(feature))

    async def simplify_pdf(
        self,
        data: bytes,
        options: Options = None,
        *,
        use_remote: bool = True,
        on_progress: ProgressCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> SimplificationResult | None:
        try:
            text_data = await self.pdf_extractor.extract_text(data)
        except AuraError as exc:
            self.sink(f"❌ {exc}", "assistant")
            return None
        return await self.simplify(
            text_data, options, use_remote=use_remote, on_progress=on_progress, on_status=on_status
        )

    async def refresh(self, sandbox: PageSandbox | None = None) -> bool:
        """Abandon any simplification in flight and restore the original page."""

        self.simplification_tracker.invalidate()
        page = sandbox or self.sandbox
        if page is None:
            return False
        return await self.page.restore(page)

    async def send_message(self, text: str, sandbox: PageSandbox | None = None) -> ChatOutcome | None:
        return await self.chat.send_message(text, self._require_sandbox(sandbox))

    async def start_continuous_mode(self) -> VoiceSessionState:
        return await self._require_voice().start_continuous_mode()

    async def stop_continuous_mode(self) -> VoiceSessionState:
        return await self._require_voice().stop_continuous_mode()

    async def aclose(self) -> None:
        if self.voice is not None:
            await self.voice.stop_continuous_mode()
            await self.voice.wait_idle()
        await self.trace_store.flush()

    def _require_sandbox(self, sandbox: PageSandbox | None) -> PageSandbox:
        page = sandbox or self.sandbox
        if page is None:
            raise AuraError("No page attached; call attach_page() first.")
        return page

    def _require_voice(self) -> VoiceController:
        if self.voice is None:
            raise AuraError("Voice control needs a microphone and a transcriber.")
        return self.voice
