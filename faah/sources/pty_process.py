from __future__ import annotations

import asyncio
import errno
import fcntl
import logging
import os
import pty
import signal
import struct
import subprocess
import termios
from typing import Callable

log = logging.getLogger(__name__)


class PTYProcess:
    """Run a command on a pseudo-terminal and tap its raw output.

    The data callback receives raw bytes; an empty ``b""`` signals EOF.
    """

    def __init__(self) -> None:
        self._master_fd: int | None = None
        self._process: subprocess.Popen[bytes] | None = None
        self._on_data: Callable[[bytes], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        command: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        rows: int = 24,
        cols: int = 80,
    ) -> None:
        master_fd, slave_fd = pty.openpty()
        self._master_fd = master_fd

        # Size the PTY before spawning so the child sees the right dimensions.
        winsize = struct.pack("HHHH", rows, cols, 0, 0)
        fcntl.ioctl(master_fd, termios.TIOCSWINSZ, winsize)

        spawn_env = os.environ.copy()
        if env:
            spawn_env.update(env)
        spawn_env.setdefault("TERM", "xterm-256color")

        try:
            self._process = subprocess.Popen(
                command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=spawn_env,
                start_new_session=True,
            )
        except OSError:
            os.close(master_fd)
            self._master_fd = None
            raise
        finally:
            # Slave fd is owned by the child now.
            os.close(slave_fd)

        flags = fcntl.fcntl(master_fd, fcntl.F_GETFL)
        fcntl.fcntl(master_fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)

    def attach_to_loop(
        self,
        loop: asyncio.AbstractEventLoop,
        on_data_callback: Callable[[bytes], None],
    ) -> None:
        if self._master_fd is None:
            raise RuntimeError("PTYProcess not started")
        self._loop = loop
        self._on_data = on_data_callback
        loop.add_reader(self._master_fd, self._on_readable)

    def _on_readable(self) -> None:
        assert self._master_fd is not None
        try:
            data = os.read(self._master_fd, 65536)
        except BlockingIOError:
            return
        except OSError as exc:
            # EIO means the child closed its side.
            if exc.errno != errno.EIO:
                log.warning(
                    "Unexpected OSError on PTY read (errno=%s): %s", exc.errno, exc
                )
            data = b""
        if not data:
            self._detach_reader()
        if self._on_data:
            self._on_data(data)

    def _detach_reader(self) -> None:
        if self._loop and self._master_fd is not None:
            try:
                self._loop.remove_reader(self._master_fd)
            except (ValueError, OSError):
                log.debug("remove_reader failed", exc_info=True)

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> None:
        if self._master_fd is None:
            raise RuntimeError("PTYProcess not started")
        os.write(self._master_fd, data)

    def resize(self, rows: int, cols: int) -> None:
        if self._master_fd is None:
            raise RuntimeError("PTYProcess not started")
        winsize = struct.pack("HHHH", rows, cols, 0, 0)
        fcntl.ioctl(self._master_fd, termios.TIOCSWINSZ, winsize)
        if self.is_alive:
            self.send_signal(signal.SIGWINCH)

    def send_signal(self, sig: int) -> None:
        if self._process is None:
            raise RuntimeError("PTYProcess not started")
        try:
            os.killpg(os.getpgid(self._process.pid), sig)
        except ProcessLookupError:
            pass

    def terminate(self, kill_timeout: float = 3.0) -> None:
        if self._process is None or not self.is_alive:
            return
        self.send_signal(signal.SIGTERM)
        try:
            self._process.wait(timeout=kill_timeout)
        except subprocess.TimeoutExpired:
            self.send_signal(signal.SIGKILL)
            self._process.wait(timeout=5.0)

    async def wait(self) -> int:
        """Wait for the child without blocking the event loop."""
        if self._process is None:
            raise RuntimeError("PTYProcess not started")
        return await asyncio.to_thread(self._process.wait)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_alive(self) -> bool:
        if self._process is None:
            return False
        return self._process.poll() is None

    @property
    def exit_code(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    @property
    def pid(self) -> int | None:
        if self._process is None:
            return None
        return self._process.pid

    def close(self) -> None:
        self._detach_reader()
        if self._master_fd is not None:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = None
        if self._process is not None:
            self.terminate()
        self._on_data = None
        self._loop = None
