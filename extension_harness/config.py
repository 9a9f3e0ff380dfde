from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_MODEL = "anthropic/claude-3.7-sonnet"

# Searched in order when no explicit env file is given; first hit wins.
ENV_CANDIDATES = (".env.local", "my.env.local", "../.env.local")


@dataclass(frozen=True)
class Config:
    openrouter_api_key: str = ""
    default_model: str = DEFAULT_MODEL
    editor_command: tuple[str, ...] = ("code",)
    grace_timeout: float = 5.0
    panel_models: tuple[str, ...] = field(default_factory=tuple)
    panel_concurrency: int = 3

    @property
    def has_api_key(self) -> bool:
        return bool(self.openrouter_api_key.strip())

    @staticmethod
    def load_env_file(env_path: str | Path | None = None) -> Path | None:
        """Load variables from `env_path`, or from the first candidate that exists.

        Returns the path that was loaded, or None.  Variables already set in
        the process environment take precedence over the file.
        """
        if env_path is not None:
            path = Path(env_path)
            if not path.is_file():
                return None
            load_dotenv(path)
            return path

        cwd = Path.cwd()
        for candidate in ENV_CANDIDATES:
            path = (cwd / candidate).resolve()
            if path.is_file():
                load_dotenv(path)
                return path
        return None

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        cls.load_env_file(env_path)

        model = os.getenv("DEFAULT_MODEL", "").strip() or DEFAULT_MODEL

        raw_models = os.getenv("EXPERT_PANEL_MODELS", "")
        models = tuple(m.strip() for m in raw_models.split(",") if m.strip())

        command = tuple(shlex.split(os.getenv("VSCODE_COMMAND", "code"))) or ("code",)

        return cls(
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            default_model=model,
            editor_command=command,
            grace_timeout=float(os.getenv("STOP_GRACE_SECONDS", "5")),
            panel_models=models or (model,),
            panel_concurrency=int(os.getenv("EXPERT_PANEL_CONCURRENCY", "3")),
        )
