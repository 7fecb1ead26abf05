from __future__ import annotations

"""
Runtime configuration for DeepThink.

Priority: env vars > settings dict > defaults.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Optional

GatewayApi = Literal["chat", "responses"]

DEFAULT_MODEL_NAME = "gpt-4o-mini"
DEFAULT_API_KEY = "EMPTY"
DEFAULT_API: GatewayApi = "chat"

_TRUE_STRINGS = ("true", "1", "yes", "y")


def _as_bool(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUE_STRINGS
    return bool(raw)


@dataclass
class DeepThinkConfig:
    """
    Settings for the model gateway and session.

    `api="chat"` sends the full branch history on every call (works with any
    OpenAI-compatible server). `api="responses"` uses the OpenAI Responses API
    and resumes a branch from its continuation id when it has one.
    """

    model_name: str = DEFAULT_MODEL_NAME
    base_url: Optional[str] = None
    api_key: str = DEFAULT_API_KEY
    api: GatewayApi = DEFAULT_API

    # Some OpenAI-compatible servers (vLLM, Gemini) have no "developer" role.
    developer_role_as_system: bool = False

    max_tokens: int = 1200
    timeout_s: Optional[float] = 60.0

    # Debug
    dump_dir: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DeepThinkConfig":
        """
        Supported keys in settings (and their env overrides):
          - model_name (DEEPTHINK_MODEL_NAME)
          - base_url (OPENAI_BASE_URL)
          - api_key (OPENAI_API_KEY)
          - api: "chat" | "responses" (DEEPTHINK_API)
          - developer_role_as_system (DEEPTHINK_DEVELOPER_AS_SYSTEM)
          - max_tokens: int
          - timeout_s: float
          - dump_dir: str (DEEPTHINK_DUMP_DIR)
        """
        settings = settings or {}
        env = os.environ if environ is None else environ
        cfg = cls()

        cfg.model_name = str(env.get("DEEPTHINK_MODEL_NAME") or settings.get("model_name") or cfg.model_name)
        cfg.base_url = env.get("OPENAI_BASE_URL") or settings.get("base_url") or cfg.base_url
        cfg.api_key = str(env.get("OPENAI_API_KEY") or settings.get("api_key") or cfg.api_key)

        api = str(env.get("DEEPTHINK_API") or settings.get("api") or cfg.api).strip().lower()
        if api not in ("chat", "responses"):
            raise ValueError(f"api must be 'chat' or 'responses', got {api!r}")
        cfg.api = api  # type: ignore[assignment]

        cfg.developer_role_as_system = _as_bool(
            env.get("DEEPTHINK_DEVELOPER_AS_SYSTEM", settings.get("developer_role_as_system")),
            cfg.developer_role_as_system,
        )

        max_tokens = settings.get("max_tokens")
        if isinstance(max_tokens, int) and max_tokens > 0:
            cfg.max_tokens = max_tokens

        timeout_s = settings.get("timeout_s")
        if isinstance(timeout_s, (int, float)) and timeout_s > 0:
            cfg.timeout_s = float(timeout_s)

        cfg.dump_dir = env.get("DEEPTHINK_DUMP_DIR") or settings.get("dump_dir") or cfg.dump_dir
        return cfg

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.__dict__)
        if out.get("api_key") and out["api_key"] != DEFAULT_API_KEY:
            out["api_key"] = "***"
        return out
