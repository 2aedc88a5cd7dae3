"""Unit tests for SessionController."""

import asyncio

import pytest

from dictate2me.models.session import SessionState
from dictate2me.models.transcription import TranscriptChunk
from dictate2me.models.ui import IndicatorState
from dictate2me.recognition.base import StreamErrorKind
from dictate2me.rules import RuleBook
from dictate2me.services.indicator import IndicatorStateMachine
from dictate2me.services.interim_echo import InterimEcho
from dictate2me.services.session_controller import SessionController
from dictate2me.services.transcript_pipeline import TranscriptPipeline
from dictate2me.surface import PlainTextSurface


@pytest.fixture
def controller(document, settings_store, fake_provider, fake_clock):
    settings = settings_store.settings
    indicator = IndicatorStateMachine(document, sticky_seconds=settings.indicator_sticky_seconds)
    echo = InterimEcho()
    holder = {}
    pipeline = TranscriptPipeline(
        settings_store,
        indicator,
        rules=RuleBook.from_settings(settings),
        is_session_active_for=lambda target: holder["controller"].is_active_for(target),
        interim_span_for=echo.open_span_for,
        document_id=document.document_id,
    )
    controller = SessionController(document, fake_provider, pipeline, echo, indicator,
                                   settings_store, clock=fake_clock)
    holder["controller"] = controller
    return controller


async def settle(controller):
    """Let restart timers fire and the pipeline drain."""
    await asyncio.sleep(0.05)
    await controller.pipeline.join()


@pytest.mark.unit
class TestSessionBinding:
    """Test cases for bind/unbind."""

    @pytest.mark.asyncio
    async def test_bind_starts_stream(self, controller, surface, fake_provider):
        assert controller.bind(surface)

        handle = fake_provider.latest
        assert handle.started
        assert handle.language == "en-US"
        assert controller.session.state is SessionState.STARTING

        handle.emit_start()
        assert controller.session.state is SessionState.LISTENING
        assert controller.indicator.state is IndicatorState.LISTENING

    @pytest.mark.asyncio
    async def test_bind_twice_is_noop(self, controller, surface, fake_provider):
        controller.bind(surface)
        assert not controller.bind(surface)
        assert len(fake_provider.handles) == 1

    @pytest.mark.asyncio
    async def test_bind_disabled_dictation(self, controller, surface, settings_store, fake_provider):
        settings_store.update(dictation_active=False)
        assert not controller.bind(surface)
        assert fake_provider.handles == []

    @pytest.mark.asyncio
    async def test_bind_password_field(self, controller, document, fake_provider):
        password = document.attach(PlainTextSurface("pw", input_type="password"))
        document.focus(password)

        assert not controller.bind(password)
        assert fake_provider.handles == []
        assert controller.indicator.state is IndicatorState.PASSWORD_FIELD

    @pytest.mark.asyncio
    async def test_bind_blacklisted_site(self, controller, surface, settings_store, fake_provider):
        settings_store.update(blacklist_sites="docs.example.com")
        assert not controller.bind(surface)
        assert fake_provider.handles == []
        assert controller.indicator.state is IndicatorState.BLACKLISTED

    @pytest.mark.asyncio
    async def test_bind_read_only(self, controller, document, fake_provider):
        read_only = document.attach(PlainTextSurface("ro", read_only=True))
        document.focus(read_only)
        assert not controller.bind(read_only)
        assert fake_provider.handles == []

    @pytest.mark.asyncio
    async def test_bind_other_target_replaces_session(self, controller, document, surface, fake_provider):
        controller.bind(surface)
        first = fake_provider.latest
        other = document.attach(PlainTextSurface("other"))
        document.focus(other)

        controller.bind(other)

        assert first.aborted
        assert controller.session.target is other
        assert len(fake_provider.handles) == 2

    @pytest.mark.asyncio
    async def test_unbind_aborts_and_retracts_interim(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        handle.emit_interim("half a thought")
        assert surface.get_text() == "half a thought"

        controller.unbind("user stopped")

        assert handle.aborted
        assert handle.on_chunk is None
        assert surface.get_text() == ""
        assert controller.session is None
        assert controller.indicator.state is IndicatorState.IDLE

    @pytest.mark.asyncio
    async def test_start_failure_goes_idle(self, controller, surface, fake_provider):
        fake_provider.fail_start = True

        assert not controller.bind(surface)
        await settle(controller)

        assert controller.session is None
        assert len(fake_provider.handles) == 1
        assert controller.indicator.state is IndicatorState.IDLE

    @pytest.mark.asyncio
    async def test_open_failure_goes_idle(self, controller, surface, fake_provider):
        fake_provider.fail_open = True
        assert not controller.bind(surface)
        assert controller.session is None


@pytest.mark.unit
class TestTranscriptRouting:
    """Test cases for chunk routing between interim echo and pipeline."""

    @pytest.mark.asyncio
    async def test_final_chunks_committed(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        for index, text in enumerate(["one", "two", "three"]):
            handle.emit_final(text, index)
        await settle(controller)

        assert surface.get_text() == "one two three "
        assert controller.pipeline.committed_count == 3

    @pytest.mark.asyncio
    async def test_interim_never_duplicates_final(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_interim("hello")
        handle.emit_interim("hello world")
        handle.emit_final("hello world")
        await settle(controller)

        assert surface.get_text() == "hello world "

    @pytest.mark.asyncio
    async def test_final_in_batch_wins_over_interim(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_chunks([
            TranscriptChunk(index=0, text="good morning", is_final=True),
            TranscriptChunk(index=1, text="every", is_final=False),
        ])
        assert controller.interim_echo.span is None
        await settle(controller)

        assert surface.get_text() == "good morning "

    @pytest.mark.asyncio
    async def test_user_edit_during_interim(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_interim("hello")
        surface.user_edit(0, 0, "Note: ")
        handle.emit_interim("hello there")
        handle.emit_final("hello there")
        await settle(controller)

        text = surface.get_text()
        assert text.startswith("Note: ")
        assert text == "Note: hello there hello"

    @pytest.mark.asyncio
    async def test_phrase_after_user_edit_keeps_utterance_order(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_interim("alpha")
        surface.user_edit(0, 0, ">")
        handle.emit_final("alpha")
        handle.emit_interim("beta")
        handle.emit_final("beta")
        await settle(controller)

        text = surface.get_text()
        assert text.index("alpha ") < text.index("beta ")
        assert text == ">alpha beta alpha"

    @pytest.mark.asyncio
    async def test_empty_final_retracts_interim(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_interim("uh")
        handle.emit_final("   ")
        await settle(controller)

        assert surface.get_text() == ""
        assert controller.pipeline.committed_count == 0

    @pytest.mark.asyncio
    async def test_interim_disabled_by_settings(self, controller, surface, settings_store, fake_provider):
        settings_store.update(interim_results_enabled=False)
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_interim("hello")

        assert surface.get_text() == ""
        assert not handle.interim_results


@pytest.mark.unit
class TestStreamLifecycle:
    """Test cases for restart, timeout and error handling."""

    @pytest.mark.asyncio
    async def test_natural_end_restarts(self, controller, surface, fake_provider, fake_clock):
        controller.bind(surface)
        session = controller.session
        first = fake_provider.latest
        first.emit_start()
        fake_clock.advance(5)

        first.emit_end()
        assert controller.restart_pending
        await settle(controller)

        assert len(fake_provider.handles) == 2
        assert controller.session is session
        assert session.generation == 2
        assert fake_provider.latest.started

    @pytest.mark.asyncio
    async def test_restart_bound_by_timeout(self, controller, surface, fake_provider, fake_clock):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        fake_clock.advance(30)

        handle.emit_end()
        await settle(controller)

        assert len(fake_provider.handles) == 1
        assert controller.session is None
        assert controller.indicator.state is IndicatorState.IDLE

    @pytest.mark.asyncio
    async def test_activity_extends_timeout(self, controller, surface, fake_provider, fake_clock):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        fake_clock.advance(25)
        handle.emit_final("still here")
        fake_clock.advance(25)

        handle.emit_end()
        await settle(controller)

        assert len(fake_provider.handles) == 2

    @pytest.mark.asyncio
    async def test_no_restart_when_stream_never_started(self, controller, surface, fake_provider):
        controller.bind(surface)
        fake_provider.latest.emit_end()
        await settle(controller)

        assert len(fake_provider.handles) == 1
        assert controller.session is None

    @pytest.mark.asyncio
    async def test_no_restart_after_focus_loss(self, controller, document, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        document.blur()

        handle.emit_end()
        await settle(controller)

        assert len(fake_provider.handles) == 1
        assert controller.session is None

    @pytest.mark.asyncio
    async def test_interim_promoted_on_end(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        handle.emit_interim("unfinished sentence")

        handle.emit_end()
        await settle(controller)

        assert surface.get_text() == "unfinished sentence "

    @pytest.mark.asyncio
    async def test_fatal_error_disables_dictation(self, controller, document, surface,
                                                  settings_store, fake_provider, published):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        handle.emit_interim("lost")

        handle.emit_error(StreamErrorKind.PERMISSION_DENIED)
        handle.emit_end()
        await settle(controller)

        assert handle.aborted
        assert surface.get_text() == ""
        assert not settings_store.settings.dictation_active
        assert controller.mic_access_denied
        assert controller.indicator.state is IndicatorState.NO_MIC_ACCESS
        assert published["mic_denied"][0].site == "docs.example.com"
        assert len(fake_provider.handles) == 1

        other = document.attach(PlainTextSurface("other"))
        document.focus(other)
        assert not controller.bind(other)
        assert len(fake_provider.handles) == 1

    @pytest.mark.asyncio
    async def test_service_unavailable_is_fatal(self, controller, surface, settings_store, fake_provider):
        controller.bind(surface)
        fake_provider.latest.emit_start()
        fake_provider.latest.emit_error(StreamErrorKind.SERVICE_UNAVAILABLE)
        assert not settings_store.settings.dictation_active

    @pytest.mark.asyncio
    async def test_recoverable_error_restarts(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_error(StreamErrorKind.NETWORK)
        assert controller.session.state is SessionState.ERROR_RECOVERABLE
        assert controller.indicator.state is IndicatorState.RECOGNITION_ERROR

        handle.emit_end()
        await settle(controller)

        assert len(fake_provider.handles) == 2

    @pytest.mark.asyncio
    async def test_no_speech_ignored(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()

        handle.emit_error(StreamErrorKind.NO_SPEECH)

        assert controller.session.state is SessionState.LISTENING
        assert controller.indicator.state is IndicatorState.LISTENING

    @pytest.mark.asyncio
    async def test_stale_callbacks_ignored(self, controller, surface, fake_provider):
        controller.bind(surface)
        first = fake_provider.latest
        first.emit_start()
        stale_chunk = first.on_chunk
        stale_end = first.on_end
        stale_error = first.on_error

        first.emit_end()
        await settle(controller)
        second = fake_provider.latest
        second.emit_start()

        stale_chunk([TranscriptChunk(index=0, text="ghost", is_final=True)])
        stale_error(StreamErrorKind.PERMISSION_DENIED)
        stale_end()
        await settle(controller)

        assert surface.get_text() == ""
        assert controller.session.handle is second
        assert controller.session.state is SessionState.LISTENING
        assert len(fake_provider.handles) == 2

    @pytest.mark.asyncio
    async def test_unbind_cancels_pending_restart(self, controller, surface, fake_provider):
        controller.bind(surface)
        handle = fake_provider.latest
        handle.emit_start()
        handle.emit_end()
        assert controller.restart_pending

        controller.unbind("stopped")
        await settle(controller)

        assert not controller.restart_pending
        assert len(fake_provider.handles) == 1
