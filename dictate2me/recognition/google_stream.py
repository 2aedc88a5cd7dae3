"""Google Speech-to-Text streaming recognition provider."""

import asyncio
import logging
import queue
import threading
from typing import Callable, Iterator, List, Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from .base import RecognitionProvider, RecognitionStreamHandle, StreamErrorKind
from ..audio.capture import AudioCapture
from ..models.transcription import TranscriptChunk

logger = logging.getLogger(__name__)


def classify_google_error(error: Exception) -> Optional[StreamErrorKind]:
    """Map a streaming failure to a stream error kind.

    Returns:
        None when the failure is the service's normal end of stream
    """
    if isinstance(error, gax_exceptions.OutOfRange):
        return None
    if isinstance(error, (gax_exceptions.PermissionDenied, gax_exceptions.Unauthenticated)):
        return StreamErrorKind.PERMISSION_DENIED
    if isinstance(error, gax_exceptions.FailedPrecondition):
        return StreamErrorKind.SERVICE_UNAVAILABLE
    if isinstance(error, (gax_exceptions.ServiceUnavailable, gax_exceptions.DeadlineExceeded)):
        return StreamErrorKind.NETWORK
    if isinstance(error, OSError):
        return StreamErrorKind.AUDIO_CAPTURE
    return StreamErrorKind.OTHER


class GoogleStreamHandle(RecognitionStreamHandle):
    """One streaming_recognize call fed from the microphone.

    The gRPC call runs on its own thread; every callback is marshalled onto
    the event loop that called start().
    """

    def __init__(self,
                 client: speech.SpeechClient,
                 language: str,
                 continuous: bool = True,
                 interim_results: bool = True,
                 sample_rate: int = 16000,
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 capture_factory: Callable[..., AudioCapture] = AudioCapture):
        super().__init__(language, continuous, interim_results)
        self.client = client
        self.sample_rate = sample_rate
        self.capture_factory = capture_factory
        self.streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=language,
                use_enhanced=use_enhanced,
                enable_automatic_punctuation=enable_automatic_punctuation,
            ),
            interim_results=interim_results,
            single_utterance=not continuous,
        )

        self._audio_queue: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._aborted = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._capture: Optional[AudioCapture] = None
        self._capture_error: Optional[Exception] = None
        self._final_count = 0

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._capture = self.capture_factory(
            callback=self._audio_queue.put,
            sample_rate=self.sample_rate,
            error_callback=self._on_capture_error,
        )
        self._capture.start_recording()

        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.name = f"GoogleStream-{self.language}"
        self._thread.start()

    def abort(self) -> None:
        self._aborted.set()
        self.detach()
        self._audio_queue.put(None)
        self._stop_capture()

    def _on_capture_error(self, error: Exception) -> None:
        self._capture_error = error
        self._audio_queue.put(None)

    def _stop_capture(self) -> None:
        if self._capture is not None:
            self._capture.stop_recording()

    def _requests(self) -> Iterator[speech.StreamingRecognizeRequest]:
        while not self._aborted.is_set():
            chunk = self._audio_queue.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run(self) -> None:
        """Worker thread: drive the gRPC stream and forward results."""
        self._post(self._emit_start)
        try:
            responses = self.client.streaming_recognize(
                config=self.streaming_config,
                requests=self._requests(),
            )
            for response in responses:
                if self._aborted.is_set():
                    break
                chunks = self._to_chunks(response.results)
                if chunks:
                    self._post(self._emit_chunks, chunks)
            if self._capture_error is not None:
                self._post(self._emit_error, StreamErrorKind.AUDIO_CAPTURE)
        except gax_exceptions.GoogleAPICallError as e:
            kind = classify_google_error(e)
            if kind is not None:
                logger.warning(f"Google stream error ({kind.value}): {e}")
                self._post(self._emit_error, kind)
            else:
                logger.debug(f"Google stream reached its duration limit: {e}")
        except Exception as e:
            logger.error(f"Google stream failed: {e}", exc_info=True)
            self._post(self._emit_error, classify_google_error(e))
        finally:
            self._stop_capture()
            self._post(self._emit_end)

    def _to_chunks(self, results) -> List[TranscriptChunk]:
        chunks = []
        finals = 0
        for offset, result in enumerate(results):
            text = result.alternatives[0].transcript if result.alternatives else ""
            chunks.append(TranscriptChunk(index=self._final_count + offset,
                                          text=text,
                                          is_final=result.is_final))
            if result.is_final:
                finals += 1
        self._final_count += finals
        return chunks

    def _post(self, callback: Callable, *args) -> None:
        if self._aborted.is_set() or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._dispatch, callback, args)
        except RuntimeError:
            logger.debug("Event loop closed, dropping recognition callback")

    def _dispatch(self, callback: Callable, args: tuple) -> None:
        if not self._aborted.is_set():
            callback(*args)


class GoogleStreamingProvider(RecognitionProvider):
    """Opens Google streaming recognition handles."""

    def __init__(self,
                 credentials_path: str,
                 sample_rate: int = 16000,
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 capture_factory: Callable[..., AudioCapture] = AudioCapture):
        """Initialize Google streaming provider.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Microphone sample rate
            use_enhanced: Whether to use the enhanced model
            enable_automatic_punctuation: Enable automatic punctuation
            capture_factory: Builds the microphone capture for each stream
        """
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.capture_factory = capture_factory
        self.client: Optional[speech.SpeechClient] = None

    def initialize(self) -> bool:
        """Create the Speech client from service account credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        logger.info(f"Using Google Cloud project: {credentials.project_id}")
        return True

    def open(self, language: str, continuous: bool = True,
             interim_results: bool = True) -> GoogleStreamHandle:
        if self.client is None:
            raise RuntimeError("GoogleStreamingProvider.initialize() must be called first")
        return GoogleStreamHandle(
            client=self.client,
            language=language,
            continuous=continuous,
            interim_results=interim_results,
            sample_rate=self.sample_rate,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            capture_factory=self.capture_factory,
        )
