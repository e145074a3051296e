from __future__ import annotations

DEFAULT_CONFIG: dict = {
    "general": {
        "log_file": "",
        "log_level": "INFO",
        # Run close hooks (send batched email, close log files) on SIGINT/SIGTERM.
        "flush_on_interrupt": True,
    },
    "input": {
        "poll_interval": 0.5,
        "encoding": "utf-8",
    },
    "exec": {
        "placeholder": "{}",
        "shell": "/bin/sh",
    },
    "screen": {
        "color": "",
    },
    "email": {
        "transport": "smtp",
        "smtp_host": "localhost",
        "smtp_port": 25,
        "smtp_timeout": 10.0,
        "sender": "",
        "sendmail_path": "/usr/sbin/sendmail",
        "subject_prefix": "[linewatch]",
    },
}
