"""Continuous voice interaction: record, detect silence, transcribe, route, restart."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Literal, Protocol

from aura_agent.agent.acknowledgment import is_agreement_phrase, perform_acknowledgment
from aura_agent.config import AuraConfig
from aura_agent.errors import AuraError
from aura_agent.forms.session import FormFiller
from aura_agent.lifecycle.tracker import RequestTracker
from aura_agent.sandbox import PageSandbox
from aura_agent.types import MessageSink, VoiceSessionState
from aura_agent.voice.audio import Microphone, MicrophoneStream, Transcriber
from aura_agent.voice.wav import encode_wav

LOGGER = logging.getLogger(__name__)

Route = Literal["empty", "stop", "form", "agreement", "chat", "no_page"]


class MessageHandler(Protocol):
    async def send_message(self, text: str, sandbox: PageSandbox, *, echo: bool = True) -> Any:
        ...


class VoiceController:
    """Supervises the record → transcribe → route cycle.

    Timers (silence, maximum duration, restart) are `loop.call_later`
    handles; every path that stops recording cancels them. Each recording
    takes a token from the voice `RequestTracker`, and `stop_continuous_mode`
    invalidates it, so a late timer or level poll from a stopped recording
    has no effect. An in-flight transcription or chat call is not
    interrupted by a stop; it only loses its restart.
    """

    def __init__(
        self,
        *,
        microphone: Microphone,
        transcriber: Transcriber,
        chat: MessageHandler,
        form_filler: FormFiller,
        sink: MessageSink,
        config: AuraConfig | None = None,
        sandbox: PageSandbox | None = None,
        tracker: RequestTracker | None = None,
    ) -> None:
        self.microphone = microphone
        self.transcriber = transcriber
        self.chat = chat
        self.form_filler = form_filler
        self.sink = sink
        self.config = config or AuraConfig()
        self.sandbox = sandbox
        self.tracker = tracker or RequestTracker("voice")

        self._continuous = False
        self._recording = False
        self._stream: MicrophoneStream | None = None
        self._silence_handle: asyncio.TimerHandle | None = None
        self._max_handle: asyncio.TimerHandle | None = None
        self._restart_handle: asyncio.TimerHandle | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> VoiceSessionState:
        return VoiceSessionState(is_continuous_mode=self._continuous, is_recording=self._recording)

    async def start_continuous_mode(self) -> VoiceSessionState:
        if self._continuous:
            return self.state
        self._continuous = True
        LOGGER.info("Continuous voice mode started")
        self.sink("🎙️ Continuous mode activated! Listening for commands...", "assistant")
        self.sink('💡 Say "stop listening" or "stop executing commands" when done.', "assistant")
        if not self._recording:
            await self._start_recording()
        return self.state

    async def stop_continuous_mode(self) -> VoiceSessionState:
        """End continuous mode, discarding any recording in progress. Idempotent."""

        was_active = self._continuous or self._recording
        self._continuous = False
        self.tracker.invalidate()
        self._clear_timers()
        await self._release_stream()
        if was_active:
            LOGGER.info("Continuous voice mode stopped")
        return self.state

    async def start_recording(self) -> VoiceSessionState:
        """Push-to-talk: begin a single recording outside continuous mode."""

        if not self._recording:
            await self._start_recording()
        return self.state

    async def stop_recording(self) -> Route | None:
        """Push-to-talk: stop the current recording and process it."""

        return await self._finish_recording("manual")

    async def wait_idle(self) -> None:
        """Wait until no recording-stop or processing task is pending."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def handle_transcript(self, text: str) -> Route:
        """Route one transcription: stop phrase, form answer, agreement, or chat."""

        phrases = self.config.phrases
        delays = self.config.recording
        transcript = (text or "").strip()

        if not transcript:
            if self._continuous:
                self.sink("🤔 I didn't catch that. Ready for next command...", "assistant")
                self._schedule_restart(delays.retry_delay_ms)
            else:
                self.sink("🤔 Sorry, I didn't catch that. Please try again.", "assistant")
            return "empty"

        lowered = transcript.lower()
        if any(phrase in lowered for phrase in phrases.stop_phrases):
            self.sink('🛑 Understood. Ending continuous mode. Say "browser" to start again.', "assistant")
            await self.stop_continuous_mode()
            return "stop"

        if self.form_filler.is_active:
            self.sink(f"📝 (Form) {transcript}", "user")
            await self.form_filler.submit_answer(transcript)
            if self._continuous:
                self.sink("🎙️ Ready for next field/command...", "assistant")
                self._schedule_restart(delays.form_restart_delay_ms)
            return "form"

        sandbox = self.sandbox
        if sandbox is None:
            self.sink("⚠️ No page is open.", "assistant")
            self._schedule_restart(delays.retry_delay_ms)
            return "no_page"

        if is_agreement_phrase(transcript, phrases.agreement_phrases):
            await self._acknowledge(sandbox)
            if self._continuous:
                self.sink("🎙️ Ready for next command...", "assistant")
                self._schedule_restart(delays.agreement_restart_delay_ms)
            return "agreement"

        self.sink(f'📝 I heard: "{transcript}"', "assistant")
        await self.chat.send_message(transcript, sandbox)
        if self._continuous:
            self.sink("🎙️ Ready for next command...", "assistant")
            self._schedule_restart(delays.chat_restart_delay_ms)
        return "chat"

    async def _acknowledge(self, sandbox: PageSandbox) -> None:
        self.sink("🔎 Detecting agreement checkboxes...", "assistant")
        try:
            labels = await perform_acknowledgment(
                sandbox, self.config.phrases.agreement_keywords, highlight_ms=self.config.executor.highlight_ms
            )
        except AuraError as exc:
            LOGGER.info("Agreement handling failed: %s", exc)
            self.sink(f"❌ Agreement handling failed: {exc}", "assistant")
            return
        if labels:
            self.sink(f"✅ Acknowledged: {', '.join(labels)}", "assistant")
            self.sink("👍 Agreement complete. Proceed with the next step.", "assistant")
        else:
            self.sink("❌ No agreement checkboxes found to acknowledge.", "assistant")

    async def _start_recording(self) -> bool:
        self._cancel(self._restart_handle)
        self._restart_handle = None
        if self._recording:
            return True
        token = self.tracker.issue_token()
        try:
            stream = await self.microphone.open()
        except Exception as exc:
            LOGGER.warning("Could not start recording: %s", exc)
            self.sink("Could not start recording. Please ensure microphone permissions are granted.", "assistant")
            if self._continuous:
                self._continuous = False
                self.sink("🛑 Continuous mode ended because the microphone is unavailable.", "assistant")
            return False

        if not self.tracker.is_current(token):
            LOGGER.debug("Discarding microphone stream opened for stale token %d", token)
            await stream.close()
            return False

        loop = asyncio.get_running_loop()
        self._stream = stream
        self._recording = True
        self._max_handle = loop.call_later(
            self.config.recording.max_recording_ms / 1000.0, self._on_max_duration, token
        )
        self._monitor_task = loop.create_task(self._monitor_levels(stream, token))
        LOGGER.debug("Recording started (token %d)", token)
        return True

    async def _monitor_levels(self, stream: MicrophoneStream, token: int) -> None:
        interval = self.config.recording.level_poll_interval_ms / 1000.0
        while self._recording and self.tracker.is_current(token):
            self._on_level(stream.level_db(), token)
            await asyncio.sleep(interval)

    def _on_level(self, level_db: float, token: int) -> None:
        recording = self.config.recording
        if level_db > recording.silence_db_threshold:
            self._cancel(self._silence_handle)
            self._silence_handle = None
        elif self._silence_handle is None and self._recording:
            self._silence_handle = asyncio.get_running_loop().call_later(
                recording.silence_duration_ms / 1000.0, self._on_silence, token
            )

    def _on_silence(self, token: int) -> None:
        self._silence_handle = None
        if self.tracker.is_current(token) and self._recording:
            self._spawn(self._finish_recording("silence"))

    def _on_max_duration(self, token: int) -> None:
        self._max_handle = None
        if not (self.tracker.is_current(token) and self._recording):
            return
        if self._continuous:
            self.sink("⏱️ Maximum recording time reached. Ready for next command...", "assistant")
        else:
            self.sink("⏱️ Maximum recording time reached. Processing your command...", "assistant")
        self._spawn(self._finish_recording("max_duration"))

    async def _finish_recording(self, reason: str) -> Route | None:
        if not self._recording or self._stream is None:
            return None
        LOGGER.debug("Recording stopped (%s)", reason)
        stream = self._stream
        self._stream = None
        self._recording = False
        self._clear_recording_timers()

        self.sink("🔄 Processing your command...", "assistant")
        try:
            channels = await stream.stop()
            sample_rate = stream.sample_rate
            transcript = ""
            if channels and any(len(channel) for channel in channels):
                transcript = await self.transcriber.transcribe(encode_wav(channels, sample_rate), sample_rate)
        except Exception as exc:
            LOGGER.warning("Transcription failed: %s", exc)
            self.sink("❌ Sorry, transcription failed. Please try again.", "assistant")
            self._schedule_restart(self.config.recording.error_restart_delay_ms)
            return None
        finally:
            await stream.close()

        return await self.handle_transcript(transcript)

    def _schedule_restart(self, delay_ms: int) -> None:
        if not self._continuous:
            return
        self._cancel(self._restart_handle)
        self._restart_handle = asyncio.get_running_loop().call_later(delay_ms / 1000.0, self._on_restart)

    def _on_restart(self) -> None:
        self._restart_handle = None
        if self._continuous and not self._recording:
            self._spawn(self._start_recording())

    async def _release_stream(self) -> None:
        self._recording = False
        stream = self._stream
        self._stream = None
        if stream is not None:
            try:
                await stream.close()
            except Exception as exc:
                LOGGER.warning("Failed to release microphone: %s", exc)

    def _clear_recording_timers(self) -> None:
        self._cancel(self._silence_handle)
        self._cancel(self._max_handle)
        self._silence_handle = None
        self._max_handle = None
        if self._monitor_task is not None and self._monitor_task is not asyncio.current_task():
            self._monitor_task.cancel()
        self._monitor_task = None

    def _clear_timers(self) -> None:
        self._clear_recording_timers()
        self._cancel(self._restart_handle)
        self._restart_handle = None

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    def _cancel(handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()
