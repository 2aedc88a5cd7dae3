"""Transcript pipeline: single-flight processing of final transcripts."""

import asyncio
import itertools
import logging
from typing import Callable, List, Optional, Set

from pubsub import pub

from ..config import SettingsStore, DictationSettings
from ..models.events import TOPIC_SURFACE_MUTATED, SurfaceMutationEvent
from ..models.transcription import PendingJob, InterimSpan
from ..models.ui import IndicatorState
from ..rules import RuleBook, apply_auto_replace, match_command
from ..surface.base import TextSurface, SurfaceEdit
from ..translation.base import TranslationClient, TranslationRequest
from .indicator import IndicatorStateMachine

logger = logging.getLogger(__name__)


class TranscriptPipeline:
    """Runs final transcripts through commands, auto-replace, translation and insertion.

    Jobs go through one asyncio.Queue consumed by a single worker task, so
    exactly one job executes at a time and jobs complete in arrival order.
    Interim spans captured by waiting jobs are kept aligned with edits made
    to their surface while they wait.
    """

    def __init__(self,
                 settings_store: SettingsStore,
                 indicator: IndicatorStateMachine,
                 translation_client: Optional[TranslationClient] = None,
                 rules: Optional[RuleBook] = None,
                 is_session_active_for: Optional[Callable[[TextSurface], bool]] = None,
                 interim_span_for: Optional[Callable[[TextSurface], Optional[InterimSpan]]] = None,
                 document_id: str = ""):
        """Initialize transcript pipeline.

        Args:
            settings_store: Source of translation and separator settings
            indicator: Indicator to drive during processing
            translation_client: Client used when translation is enabled
            rules: Parsed formatting commands and auto-replace rules
            is_session_active_for: Tells whether dictation still runs for a surface
            interim_span_for: Returns the interim span currently echoed on a surface
            document_id: Identifier used in surface mutation notifications
        """
        self.settings_store = settings_store
        self.indicator = indicator
        self.translation_client = translation_client
        self.rules = rules or RuleBook.from_settings(settings_store.settings)
        self.is_session_active_for = is_session_active_for or (lambda target: False)
        self.interim_span_for = interim_span_for or (lambda target: None)
        self.document_id = document_id

        self.in_flight: Optional[PendingJob] = None
        self.committed_count = 0
        self.dropped_count = 0

        self._queue: Optional[asyncio.Queue] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._open_jobs: List[PendingJob] = []
        self._watched: Set[TextSurface] = set()
        self._job_ids = itertools.count(1)

    @property
    def pending_count(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def create_job(self, text: str, target: TextSurface,
                   span: Optional[InterimSpan] = None) -> PendingJob:
        """Build a job for a final transcript, optionally superseding an interim span."""
        job = PendingJob(job_id=next(self._job_ids), text=text, target=target)
        if span is not None and span.target is target and span.text:
            job.supersedes_interim = True
            job.span_start = span.start
            job.span_text = span.text
        return job

    def submit(self, job: PendingJob) -> None:
        """Queue a job; it runs after every job submitted before it."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._track(job)
        self._queue.put_nowait(job)
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.get_running_loop().create_task(self._worker_loop())
        logger.debug(f"Queued job {job.job_id}: {job.text!r} (pending={self._queue.qsize()})")

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        if self._worker_task is not None and not self._worker_task.done():
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None
        for surface in list(self._watched):
            surface.remove_edit_listener(self._on_surface_edit)
        self._watched.clear()

    async def _worker_loop(self) -> None:
        while True:
            job = await self._queue.get()
            self.in_flight = job
            try:
                await self._process(job)
            except Exception as e:
                self.dropped_count += 1
                logger.error(f"Job {job.job_id} failed, dropping {job.text!r}: {e}", exc_info=True)
            finally:
                self.in_flight = None
                self._untrack(job)
                self._queue.task_done()
                self._settle_indicator(job.target)

    async def _process(self, job: PendingJob) -> None:
        target = job.target
        if not target.is_live():
            self._drop(job, "target is no longer attached, focused and editable")
            return

        self.indicator.set_state(IndicatorState.PROCESSING, target)

        command = match_command(job.text, self.rules.commands)
        if command is not None:
            logger.info(f"Job {job.job_id}: formatting command '{command.phrase}'")
            self._remove_superseded_span(job)
            self._ahead_of_later_phrases(job, lambda: command.execute(target))
            self._committed(job, command.action.value, command.literal)
            return

        text = apply_auto_replace(job.text, self.rules.replacements)

        settings = self.settings_store.settings
        if settings.translation_configured and text.strip():
            text = await self._translate(text, settings, target)
            if not target.is_live():
                self._drop(job, "target changed during translation")
                return

        if not text.strip():
            logger.info(f"Job {job.job_id}: nothing left to insert after rules")
            self._remove_superseded_span(job)
            return

        final_text = text + settings.trailing_separator
        if self._span_intact(job):
            self._replace_span(job, final_text)
            self._committed(job, "replace", final_text)
        else:
            self._ahead_of_later_phrases(job, lambda: target.insert_at_cursor(final_text))
            self._committed(job, "insert", final_text)

    async def _translate(self, text: str, settings: DictationSettings, target: TextSurface) -> str:
        """Translate text, falling back to the input on any failure."""
        if self.translation_client is None:
            logger.debug("Translation enabled but no client configured")
            return text

        self.indicator.set_state(IndicatorState.TRANSLATING, target)
        request = TranslationRequest(
            text=text,
            source_lang=settings.dictation_lang,
            target_lang=settings.translation_lang,
            api_key=settings.gemini_api_key,
            model=settings.effective_gemini_model,
        )
        try:
            response = await self.translation_client.translate(request)
        except Exception as e:
            logger.error(f"Translation client raised, keeping original text: {e}", exc_info=True)
            return text

        if not response.success:
            logger.warning(f"Translation failed, keeping original text: {response.error}")
            return text
        translated = (response.translated_text or "").strip()
        if not translated or translated == text.strip():
            logger.debug("Translation empty or identical to input, keeping original text")
            return text
        return translated

    def _span_matches(self, job: PendingJob) -> bool:
        if not job.supersedes_interim or job.span_start is None:
            return False
        current = job.target.get_text()[job.span_start:job.span_start + job.span_length]
        return current == job.span_text

    def _span_intact(self, job: PendingJob) -> bool:
        if not job.supersedes_interim or job.span_start is None:
            return False
        if not self._span_matches(job):
            logger.warning(f"Job {job.job_id}: interim span no longer matches surface, inserting at cursor")
            return False
        return True

    def _replace_span(self, job: PendingJob, text: str) -> SurfaceEdit:
        """Replace the captured span, keeping a cursor that sat after it in place."""
        target = job.target
        span_end = job.span_start + job.span_length
        selection_start, selection_end = target.get_selection()
        edit = target.replace_range(job.span_start, span_end, text)
        if selection_start >= span_end:
            target.set_selection(selection_start + edit.delta, selection_end + edit.delta)
        return edit

    def _later_span_start(self, job: PendingJob) -> Optional[int]:
        """Start of the earliest text on the target belonging to a later phrase."""
        target = job.target
        starts = []
        span = self.interim_span_for(target)
        if span is not None:
            starts.append(span.start)
        for later in self._open_jobs:
            if later is not job and later.target is target and self._span_matches(later):
                starts.append(later.span_start)
        return min(starts) if starts else None

    def _ahead_of_later_phrases(self, job: PendingJob, edit_at_cursor: Callable[[], SurfaceEdit]) -> None:
        """Run a cursor edit in front of text echoed for later phrases.

        By the time a job commits, the phrases after it may already be on the
        surface, either still echoing or queued with their interim span. If
        that text starts at or before the cursor, the edit is made at its
        start so the surface keeps utterance order, and the cursor is moved
        back to where it was relative to the surrounding text.
        """
        target = job.target
        start = self._later_span_start(job)
        selection_start, selection_end = target.get_selection()
        if start is None or start > selection_start:
            edit_at_cursor()
            return

        length_before = target.get_length()
        target.set_selection(start)
        edit_at_cursor()
        delta = target.get_length() - length_before
        target.set_selection(selection_start + delta, selection_end + delta)

    def _remove_superseded_span(self, job: PendingJob) -> None:
        if self._span_intact(job):
            self._replace_span(job, "")

    def _committed(self, job: PendingJob, action: str, text: str) -> None:
        self.committed_count += 1
        logger.info(f"Job {job.job_id} committed ({action}) to {job.target!r}")
        pub.sendMessage(TOPIC_SURFACE_MUTATED, event=SurfaceMutationEvent(
            document_id=self.document_id,
            surface_id=job.target.surface_id,
            action=action,
            text=text,
        ))

    def _drop(self, job: PendingJob, reason: str) -> None:
        self.dropped_count += 1
        logger.warning(f"Dropping job {job.job_id} ({job.text!r}): {reason}")

    def _settle_indicator(self, target: TextSurface) -> None:
        if self.pending_count:
            return
        if self.is_session_active_for(target):
            self.indicator.set_state(IndicatorState.LISTENING, target)
        else:
            self.indicator.set_state(IndicatorState.IDLE)

    def _track(self, job: PendingJob) -> None:
        self._open_jobs.append(job)
        if job.target not in self._watched:
            job.target.add_edit_listener(self._on_surface_edit)
            self._watched.add(job.target)

    def _untrack(self, job: PendingJob) -> None:
        if job in self._open_jobs:
            self._open_jobs.remove(job)
        if job.target in self._watched and not any(j.target is job.target for j in self._open_jobs):
            job.target.remove_edit_listener(self._on_surface_edit)
            self._watched.discard(job.target)

    def _on_surface_edit(self, surface: TextSurface, edit: SurfaceEdit) -> None:
        for job in self._open_jobs:
            if job.target is surface:
                job.rebase(edit)
