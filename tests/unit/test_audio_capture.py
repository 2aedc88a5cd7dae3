"""Unit tests for AudioCapture class."""

import threading
import time
from unittest.mock import Mock, patch

import pytest

from dictate2me.audio.capture import AudioCapture


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self):
        """Test AudioCapture initialization with default parameters."""
        capture = AudioCapture(callback=Mock())

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 1600
        assert capture.channels == 1
        assert capture.is_recording is False
        assert capture.total_chunks == 0

    def test_start_recording_opens_stream(self, mock_pyaudio):
        """Test starting audio recording opens the input stream synchronously."""
        capture = AudioCapture(callback=Mock(), sample_rate=44100)

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()

            assert capture.is_recording is True
            assert capture.recording_thread.daemon is True
            mock_record.assert_called_once()

        kwargs = mock_pyaudio['instance'].open.call_args.kwargs
        assert kwargs['rate'] == 44100
        assert kwargs['input'] is True
        capture.stop_recording()

    def test_start_recording_already_recording(self, mock_pyaudio):
        """Test starting recording when already recording."""
        capture = AudioCapture(callback=Mock())
        capture.is_recording = True

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()
            mock_record.assert_not_called()

    def test_start_recording_device_error(self, mock_pyaudio):
        """Test that a missing input device raises and releases PyAudio."""
        mock_pyaudio['instance'].open.side_effect = OSError("Invalid input device")
        capture = AudioCapture(callback=Mock())

        with pytest.raises(OSError):
            capture.start_recording()

        assert capture.is_recording is False
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_chunks_delivered_to_callback(self, mock_pyaudio):
        """Test recorded chunks reach the callback until stopped."""
        received = []
        enough = threading.Event()

        def on_chunk(chunk):
            received.append(chunk)
            if len(received) >= 3:
                enough.set()

        capture = AudioCapture(callback=on_chunk)
        capture.start_recording()
        assert enough.wait(timeout=2.0)
        capture.stop_recording()

        assert capture.is_recording is False
        assert all(chunk == b'\x00' * 3200 for chunk in received)
        mock_pyaudio['stream'].close.assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_read_error_reported(self, mock_pyaudio):
        """Test that a read failure goes to the error callback."""
        mock_pyaudio['stream'].read.side_effect = OSError("Input overflowed")
        errors = []
        capture = AudioCapture(callback=Mock(), error_callback=errors.append)

        capture.start_recording()
        capture.recording_thread.join(timeout=2.0)

        assert len(errors) == 1
        assert isinstance(errors[0], OSError)
        mock_pyaudio['stream'].close.assert_called_once()
        capture.stop_recording()

    def test_stop_recording_not_recording(self):
        """Test stopping recording when not recording."""
        capture = AudioCapture(callback=Mock())

        capture.stop_recording()
        assert capture.is_recording is False
