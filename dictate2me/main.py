"""Main application entry point for Dictate2Me."""

import sys
import signal
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from .config import Dictate2MeConfig, SettingsStore
from .engine import DictationEngine
from .recognition.google_stream import GoogleStreamingProvider
from .surface import HostDocument, PlainTextSurface
from .translation import GeminiTranslationClient
from .ui.console_pad import ConsolePad

logger = logging.getLogger(__name__)


class DictationApp:
    """Console dictation pad: one document, one focused plain text surface."""

    def __init__(self, config_path: str, log_level: Optional[str] = None):
        self.config = Dictate2MeConfig(config_path)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.settings_store = SettingsStore.from_config(self.config)
        self.surface: Optional[PlainTextSurface] = None
        self.should_exit = False

    def init(self) -> None:
        logger.info("Initializing services...")
        settings = self.settings_store.settings

        self.provider = GoogleStreamingProvider(
            credentials_path=self.config.get_google_credentials_path(),
            sample_rate=self.config.get('audio.sample_rate', 16000),
            use_enhanced=self.config.get('google_cloud.use_enhanced', True),
            enable_automatic_punctuation=not settings.disable_auto_punctuation,
        )
        self.provider.initialize()

        self.translation_client = GeminiTranslationClient(
            timeout_seconds=self.config.get('translation.timeout_seconds', 15.0),
        )

        self.document = HostDocument(location=self.config.get('document.location', 'console://dictate2me'))
        self.surface = self.document.attach(PlainTextSurface("pad"))
        self.engine = DictationEngine(
            self.document,
            self.settings_store,
            self.provider,
            translation_client=self.translation_client,
        )
        self.pad = ConsolePad(self.surface)

        logger.info(f"Dictation language: {settings.dictation_lang}, "
                    f"translation: {settings.translation_lang if settings.translation_configured else 'off'}")

    def request_exit(self) -> None:
        logger.info("Exit requested")
        self.should_exit = True

    async def run(self, duration: Optional[int]) -> str:
        loop = asyncio.get_running_loop()
        handles_sigint = True
        try:
            loop.add_signal_handler(signal.SIGINT, self.request_exit)
        except (NotImplementedError, RuntimeError):
            handles_sigint = False
            logger.debug("SIGINT handler unavailable, Ctrl+C raises KeyboardInterrupt")

        self.pad.start()
        self.engine.start()
        self.document.focus(self.surface)
        deadline = loop.time() + duration if duration else None
        try:
            while not self.should_exit:
                if deadline is not None and loop.time() >= deadline:
                    break
                self.pad.update()
                await asyncio.sleep(0.2)
        finally:
            await self.cleanup()
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)
        return self.surface.get_text()

    async def cleanup(self) -> None:
        await self.engine.close()
        self.pad.stop()
        logger.info(f"Pipeline committed {self.engine.pipeline.committed_count} jobs, "
                    f"dropped {self.engine.pipeline.dropped_count}")


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/dictate2me.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - warnings only, the pad owns the terminal
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Dictate2Me application starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for Dictate2Me application."""
    parser = argparse.ArgumentParser(
        description="Dictate2Me - Dictation into a console text pad",
        epilog="Formatting commands such as 'new line' or 'delete word' are applied while dictating; Ctrl+C quits"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="dictate2me.yaml",
        help="Path to configuration YAML file (default: dictate2me.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        help="Stop dictating after this many seconds (default: run until interrupted)"
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Write the dictated text to this file on exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Dictate2Me v0.1.0"
    )

    args = parser.parse_args()

    app = None
    try:
        app = DictationApp(args.config, args.log_level)
        app.init()
        text = asyncio.run(app.run(args.duration))
    except KeyboardInterrupt:
        if app is None or app.surface is None:
            print("\nGoodbye!")
            return
        text = app.surface.get_text()
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)

    print(text)
    if args.output:
        Path(args.output).write_text(text, encoding='utf-8')
        logger.info(f"Dictated text written to {args.output}")


if __name__ == "__main__":
    main()
