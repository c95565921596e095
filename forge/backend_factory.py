from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

from forge.config_models import BackendConfig
from forge.model_backend import ChatCompletionsBackend, ModelBackend

# provider -> (base_url, api key environment variable)
PROVIDER_DEFAULTS: Dict[str, Tuple[str, str]] = {
    "groq": ("https://api.groq.com/openai/v1", "GROQ_API_KEY"),
    "openrouter": ("https://openrouter.ai/api/v1", "OPENROUTER_API_KEY"),
    "openai": ("https://api.openai.com/v1", "OPENAI_API_KEY"),
}


def build_backend(
    backend_config: BackendConfig,
    event_logger: Optional[Callable[[str], None]] = None,
) -> ModelBackend:
    """Construct backend implementation from the backend config section."""

    defaults = PROVIDER_DEFAULTS.get(backend_config.provider)
    if defaults is None:
        raise ValueError(f"Unsupported backend provider: {backend_config.provider}")
    default_base_url, default_key_env = defaults
    return ChatCompletionsBackend(
        model=backend_config.model,
        base_url=backend_config.base_url or default_base_url,
        api_key_env=backend_config.api_key_env or default_key_env,
        max_retries=backend_config.max_retries,
        initial_backoff_s=backend_config.initial_backoff_s,
        max_backoff_s=backend_config.max_backoff_s,
        timeout_s=backend_config.timeout_s,
        event_logger=event_logger,
    )
