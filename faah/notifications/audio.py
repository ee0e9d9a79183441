from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import time
from pathlib import Path
from typing import Protocol, Sequence

from .models import Category

log = logging.getLogger(__name__)

DEFAULT_BACKENDS: list[str] = ["pygame", "simpleaudio", "command", "bell"]

# Linux players tried in order by the "command" backend.
LINUX_PLAYERS: list[str] = ["mpg123", "paplay", "aplay"]

_POWERSHELL_PLAY = (
    "Add-Type -AssemblyName PresentationCore; "
    "$p = New-Object System.Windows.Media.MediaPlayer; "
    "$p.Open([uri]'{path}'); $p.Volume = {volume}; $p.Play(); "
    "Start-Sleep -Milliseconds 300; "
    "while ($p.Position -lt $p.NaturalDuration.TimeSpan) {{ Start-Sleep -Milliseconds 100 }}"
)


class PlaybackSink(Protocol):
    def play(self, category: Category, volume: int) -> None: ...


class AudioNotifier:
    """Play the sound configured for a category.

    Volume is 0-100.  Missing category sounds fall back to the ``default``
    entry; with no playable file at all the terminal bell is rung.
    """

    def __init__(
        self,
        enabled: bool = True,
        media_dir: str = "",
        backend_preference: Sequence[str] | None = None,
        sounds: dict[str, str] | None = None,
        platform: str | None = None,
    ) -> None:
        self.enabled = enabled
        self.media_dir = Path(media_dir).expanduser() if media_dir else None
        self.backend_preference = list(backend_preference or DEFAULT_BACKENDS)
        self.sounds: dict[str, str] = sounds or {}
        self.platform = platform or sys.platform

    def play(self, category: Category, volume: int) -> None:
        if not self.enabled:
            return

        vol = max(0, min(100, volume)) / 100.0
        sound_path = self.resolve_sound(category)

        if sound_path is None:
            log.debug("No sound file for %s, ringing bell", category.value)
            self._try_bell()
            return

        path = str(sound_path)
        for backend in self.backend_preference:
            if backend == "pygame" and self._try_pygame(path, vol):
                return
            if backend == "simpleaudio" and self._try_simpleaudio(path, vol):
                return
            if backend == "command" and self._try_command(path, vol):
                return
            if backend == "bell":
                self._try_bell()
                return
        log.debug("No audio backend could play %s", path)

    def resolve_sound(self, category: Category) -> Path | None:
        for key in (category.value, "default"):
            candidate = self._expand(self.sounds.get(key, ""))
            if candidate is not None and candidate.is_file():
                return candidate
        return None

    def _expand(self, name: str) -> Path | None:
        if not name:
            return None
        path = Path(name).expanduser()
        if not path.is_absolute() and self.media_dir is not None:
            path = self.media_dir / path
        return path

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------

    def _try_pygame(self, path: str, volume: float) -> bool:
        try:
            import pygame.mixer  # type: ignore[import-untyped]

            if not pygame.mixer.get_init():
                pygame.mixer.init()

            sound = pygame.mixer.Sound(path)
            sound.set_volume(volume)
            sound.play()
            return True
        except ImportError:
            log.debug("pygame backend unavailable")
            return False
        except Exception:
            log.debug("pygame backend failed for %s", path, exc_info=True)
            return False

    def _try_simpleaudio(self, path: str, volume: float) -> bool:
        # simpleaudio only handles WAV and has no volume control.
        if not path.lower().endswith(".wav"):
            return False
        try:
            import simpleaudio  # type: ignore[import-untyped]

            wave_obj = simpleaudio.WaveObject.from_wave_file(path)
            wave_obj.play()
            return True
        except (ImportError, FileNotFoundError):
            log.debug("simpleaudio backend unavailable or failed for %s", path)
            return False
        except Exception:
            log.debug("Unexpected error in simpleaudio backend", exc_info=True)
            return False

    def _try_command(self, path: str, volume: float) -> bool:
        cmd = self.player_command(path, volume)
        if cmd is None:
            return False
        try:
            subprocess.Popen(  # noqa: S603
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            return True
        except OSError:
            log.debug("Failed to launch %s", cmd[0], exc_info=True)
            return False

    def player_command(self, path: str, volume: float) -> list[str] | None:
        """Command line for the platform's stock audio player, if present."""
        if self.platform == "darwin":
            if shutil.which("afplay"):
                return ["afplay", "-v", f"{volume:.2f}", path]
            return None
        if self.platform == "win32":
            ps = shutil.which("powershell") or shutil.which("pwsh")
            if ps is None:
                return None
            script = _POWERSHELL_PLAY.format(
                path=path.replace("\\", "/").replace("'", "''"),
                volume=f"{volume:.2f}",
            )
            return [ps, "-NoProfile", "-NonInteractive", "-Command", script]
        for player in LINUX_PLAYERS:
            exe = shutil.which(player)
            if exe is None:
                continue
            if player == "mpg123":
                return [exe, "-q", "-f", str(int(volume * 32768)), path]
            if player == "paplay":
                return [exe, f"--volume={int(volume * 65536)}", path]
            return [exe, "-q", path]
        return None

    def _try_bell(self) -> None:
        print("\a", end="", flush=True, file=sys.stdout)

    def wait_until_idle(self, timeout: float = 3.0) -> None:
        """Block until pygame finishes playing, so short-lived CLIs are heard."""
        try:
            import pygame.mixer  # type: ignore[import-untyped]
        except ImportError:
            return
        if not pygame.mixer.get_init():
            return
        deadline = time.monotonic() + timeout
        while pygame.mixer.get_busy() and time.monotonic() < deadline:
            time.sleep(0.05)
