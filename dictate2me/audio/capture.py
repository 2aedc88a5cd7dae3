"""Microphone capture feeding raw audio chunks to a callback."""

import pyaudio
import logging
from threading import Thread, Event
from typing import Optional, Callable

logger = logging.getLogger(__name__)


class AudioCapture:
    """Continuous microphone capture on a background thread."""

    def __init__(
        self,
        callback: Callable[[bytes], None],
        sample_rate: int = 16000,
        chunk_size: int = 1600,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        error_callback: Optional[Callable[[Exception], None]] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            callback: Receives each audio chunk (LINEAR16 bytes)
            sample_rate: Audio sample rate
            chunk_size: Size of each audio chunk in samples (100ms at 16kHz)
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            error_callback: Called from the capture thread if reading fails
        """
        self.audio_callback = callback
        self.error_callback = error_callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False
        self.total_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    def start_recording(self) -> None:
        """Open the microphone and start reading in a background thread.

        Raises:
            OSError: If the input device cannot be opened
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio recording")
        self.stop_event.clear()
        self.total_chunks = 0
        self.stream = self._open_audio_stream()

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True

    def stop_recording(self) -> None:
        """Stop recording and clean up resources."""
        if not self.is_recording:
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        self.is_recording = False
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def _open_audio_stream(self):
        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except Exception:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            raise
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
                self.total_chunks += 1
                self.audio_callback(audio_chunk)
        except OSError as e:
            logger.error(f"Audio capture failed: {e}")
            if self.error_callback:
                self.error_callback(e)
        finally:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None
