from __future__ import annotations

import asyncio
import codecs
import logging
import os
import shutil
import signal
import sys
import termios
import tty
from typing import Hashable

from faah.config.manager import ConfigManager
from faah.config.settings import Settings, config_section
from faah.detection.stream_buffer import StreamBufferManager
from faah.notifications.audio import AudioNotifier, PlaybackSink
from faah.notifications.desktop import DesktopNotifier
from faah.notifications.dispatcher import Dispatcher
from faah.notifications.history import NotificationHistory
from faah.notifications.models import Category, NotificationEvent
from faah.sources.diagnostics import parse_diagnostics
from faah.sources.pty_process import PTYProcess
from faah.sources.reader import open_stdin_reader, pump
from faah.utils.logger import setup_logging

log = logging.getLogger(__name__)

# Exit status used when the wrapped command cannot be started.
EXIT_NOT_FOUND = 127


class FaahApp:
    """Wire fragment sources, the detection pipeline and the sinks together."""

    def __init__(
        self,
        config_path: str | None = None,
        verbose: bool = False,
        sink: PlaybackSink | None = None,
    ) -> None:
        self._config_manager = ConfigManager(config_path)
        cfg = self._config_manager.config

        general = config_section(cfg, "general")
        log_level = "DEBUG" if verbose else str(general.get("log_level", "INFO"))
        setup_logging(log_file=str(general.get("log_file", "")), log_level=log_level)

        audio_cfg = config_section(cfg, "audio")
        self._audio = AudioNotifier(
            media_dir=str(audio_cfg.get("media_dir", "")),
            backend_preference=audio_cfg.get("backend_preference"),
            sounds=audio_cfg.get("sounds"),
        )
        desktop_cfg = config_section(cfg, "desktop")
        desktop = DesktopNotifier(
            enabled=bool(desktop_cfg.get("enabled", False)),
            icon_path=str(desktop_cfg.get("icon_path", "")),
            timeout_ms=int(desktop_cfg.get("timeout_ms", 5000)),
        )
        history = NotificationHistory(
            max_size=int(config_section(cfg, "history").get("max_size", 200)),
        )

        self._dispatcher = Dispatcher(
            self.settings,
            sink if sink is not None else self._audio,
            desktop=desktop,
            history=history,
        )
        self._buffers = StreamBufferManager(
            self._dispatcher.handle_flush, self.settings
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config_manager(self) -> ConfigManager:
        return self._config_manager

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def buffers(self) -> StreamBufferManager:
        return self._buffers

    def settings(self) -> Settings:
        return self._config_manager.settings()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def toggle(self) -> bool:
        enabled = not bool(self._config_manager.get("general.enabled", True))
        self._config_manager.set("general.enabled", enabled)
        log.info("Sounds %s", "enabled" if enabled else "disabled")
        return enabled

    def test_sound(self, category: Category) -> None:
        self._dispatcher.test_play(category)
        self._audio.wait_until_idle()

    def report_diagnostics(self, text: str, source: str = "diagnostics") -> NotificationEvent | None:
        batch = parse_diagnostics(text)
        log.debug("Diagnostics from %s: %d document(s)", source, len(batch))
        event = self._dispatcher.handle_diagnostics(batch)
        if event is not None:
            self._audio.wait_until_idle()
        return event

    def summary_lines(self) -> list[str]:
        return self._dispatcher.get_history().summary_lines()

    def _log_summary(self, source: str) -> None:
        log.info("Session %s finished: %s", source, self.summary_lines()[0])

    def status_lines(self) -> list[str]:
        s = self.settings()
        lines = [
            f"config: {self._config_manager.path}",
            f"enabled: {s.enabled}",
            f"volume: {s.volume}",
        ]
        for trigger, on in s.triggers.items():
            lines.append(f"detect {trigger.value}: {on}")
        for category in Category:
            lines.append(f"cooldown {category.value}: {s.cooldown_for(category):.0f}ms")
            extra = s.extra_patterns.get(category, ())
            if extra:
                lines.append(f"extra {category.value} patterns: {len(extra)}")
        return lines

    # ------------------------------------------------------------------
    # Fragment sources
    # ------------------------------------------------------------------

    async def run_command(
        self, argv: list[str], name: str | None = None, pipe: bool = False
    ) -> int:
        """Run *argv*, watching its output, and return its exit status."""
        key = name or os.path.basename(argv[0])
        self._buffers.attach_to_loop(asyncio.get_running_loop())
        if pipe:
            code = await self._run_piped(argv, key)
        else:
            code = await self._run_pty(argv, key)
        self._dispatcher.handle_exit(code, source=key)
        self._audio.wait_until_idle()
        self._log_summary(key)
        return code

    async def watch_stdin(self, name: str = "stdin") -> None:
        self._buffers.attach_to_loop(asyncio.get_running_loop())
        try:
            reader = await open_stdin_reader()
        except (OSError, ValueError):
            log.warning("stdin cannot be read asynchronously", exc_info=True)
            return
        await pump(name, reader, self._buffers.ingest, echo=_echo)
        self._finish_stream(name)
        self._audio.wait_until_idle()
        self._log_summary(name)

    async def _run_piped(self, argv: list[str], key: str) -> int:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            log.error("Cannot run %s: %s", argv[0], exc)
            return EXIT_NOT_FOUND

        assert proc.stdout is not None and proc.stderr is not None
        out_key, err_key = f"{key}:stdout", f"{key}:stderr"
        await asyncio.gather(
            pump(out_key, proc.stdout, self._buffers.ingest, echo=_echo),
            pump(err_key, proc.stderr, self._buffers.ingest, echo=_echo_err),
        )
        code = await proc.wait()
        self._finish_stream(out_key)
        self._finish_stream(err_key)
        return code

    async def _run_pty(self, argv: list[str], key: str) -> int:
        loop = asyncio.get_running_loop()
        size = shutil.get_terminal_size()
        proc = PTYProcess()
        try:
            proc.start(argv, rows=size.lines, cols=size.columns)
        except OSError as exc:
            log.error("Cannot run %s: %s", argv[0], exc)
            return EXIT_NOT_FOUND

        eof = loop.create_future()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        out = sys.stdout.buffer

        def on_data(data: bytes) -> None:
            if not data:
                tail = decoder.decode(b"", final=True)
                if tail:
                    self._buffers.ingest(key, tail)
                if not eof.done():
                    eof.set_result(None)
                return
            out.write(data)
            out.flush()
            self._buffers.ingest(key, decoder.decode(data))

        proc.attach_to_loop(loop, on_data)

        stdin_fd = _tty_fd()
        saved_attrs = None
        if stdin_fd is not None:
            saved_attrs = termios.tcgetattr(stdin_fd)
            tty.setraw(stdin_fd)
            loop.add_reader(stdin_fd, self._forward_stdin, stdin_fd, proc, loop)
            try:
                loop.add_signal_handler(
                    signal.SIGWINCH, lambda: _resize(proc)
                )
            except (NotImplementedError, RuntimeError):
                log.debug("SIGWINCH handler unavailable")

        try:
            await eof
            code = await proc.wait()
        finally:
            if stdin_fd is not None:
                loop.remove_reader(stdin_fd)
                loop.remove_signal_handler(signal.SIGWINCH)
                if saved_attrs is not None:
                    termios.tcsetattr(stdin_fd, termios.TCSADRAIN, saved_attrs)
            self._finish_stream(key)
            proc.close()
        return code

    @staticmethod
    def _forward_stdin(
        fd: int, proc: PTYProcess, loop: asyncio.AbstractEventLoop
    ) -> None:
        try:
            data = os.read(fd, 1024)
        except OSError:
            data = b""
        if not data:
            loop.remove_reader(fd)
            return
        try:
            proc.write(data)
        except OSError:
            log.debug("Could not forward input to child", exc_info=True)

    def _finish_stream(self, key: Hashable) -> None:
        # Classify the last output before the stream goes away.
        self._buffers.flush_now(key)
        self._buffers.dispose(key)

    def close(self) -> None:
        self._buffers.close_all()


def _echo(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _echo_err(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def _resize(proc: PTYProcess) -> None:
    size = shutil.get_terminal_size()
    try:
        proc.resize(size.lines, size.columns)
    except (OSError, RuntimeError):
        log.debug("PTY resize failed", exc_info=True)


def _tty_fd() -> int | None:
    try:
        if sys.stdin.isatty():
            return sys.stdin.fileno()
    except (AttributeError, ValueError, OSError):
        pass
    return None
