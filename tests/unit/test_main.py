"""Unit tests for the Dictate2Me command line application."""

import asyncio
import sys
from unittest.mock import AsyncMock, Mock, patch

import pytest

from dictate2me.main import DictationApp, main
from dictate2me.surface import PlainTextSurface


@pytest.fixture
def app(tmp_path):
    """App with a real config file and stubbed services."""
    config_file = tmp_path / "dictate2me.yaml"
    config_file.write_text("dictation:\n  dictation_lang: en-US\n", encoding="utf-8")
    with patch("dictate2me.main.setup_logging"):
        app = DictationApp(str(config_file))
    app.document = Mock()
    app.surface = PlainTextSurface("pad", value="dictated text ")
    app.engine = Mock(close=AsyncMock())
    app.pad = Mock()
    return app


@pytest.mark.unit
class TestDictationApp:
    """Test cases for DictationApp and main()."""

    @pytest.mark.asyncio
    async def test_exit_request_returns_text(self, app):
        asyncio.get_running_loop().call_later(0.05, app.request_exit)

        text = await app.run(None)

        assert text == "dictated text "
        assert app.should_exit is True
        app.engine.start.assert_called_once()
        app.engine.close.assert_awaited_once()
        app.pad.stop.assert_called_once()

    def test_ctrl_c_keeps_dictated_text(self, tmp_path, capsys):
        output = tmp_path / "out.txt"
        with patch("dictate2me.main.DictationApp") as app_class, \
                patch("dictate2me.main.asyncio.run", side_effect=KeyboardInterrupt), \
                patch.object(sys, "argv", ["dictate2me", "--output", str(output)]):
            app_class.return_value.surface.get_text.return_value = "hello world "
            main()

        assert "hello world" in capsys.readouterr().out
        assert output.read_text(encoding="utf-8") == "hello world "

    def test_ctrl_c_during_startup(self, capsys):
        with patch("dictate2me.main.DictationApp", side_effect=KeyboardInterrupt), \
                patch.object(sys, "argv", ["dictate2me"]):
            main()

        assert "Goodbye!" in capsys.readouterr().out
