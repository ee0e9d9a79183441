from __future__ import annotations

DEFAULT_CONFIG: dict = {
    "general": {
        "enabled": True,
        "volume": 70,
        "log_file": "~/.local/share/faah/faah.log",
        "log_level": "INFO",
    },
    "detection": {
        "permission_prompt": True,
        "reply": True,
        "terminal_errors": True,
        "task_failures": True,
        "diagnostic_errors": True,
    },
    "cooldown": {
        "permission_ms": 3000,
        "reply_ms": 2000,
        "default_ms": 3000,
    },
    "buffer": {
        "flush_delay_ms": 300,
        "max_chars": 4096,
    },
    "patterns": {
        "permission": [],
        "reply": [],
        "error": [],
    },
    "audio": {
        "media_dir": "~/.local/share/faah/sounds",
        "backend_preference": ["pygame", "simpleaudio", "command", "bell"],
        "sounds": {
            "permission": "permission.mp3",
            "reply": "reply.mp3",
            "error": "error.mp3",
            "default": "fahhhhh.mp3",
        },
    },
    "desktop": {
        "enabled": False,
        "icon_path": "",
        "timeout_ms": 5000,
    },
    "history": {
        "max_size": 200,
    },
}
