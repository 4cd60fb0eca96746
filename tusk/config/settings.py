"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ─────────────────────────────────────────────────
#
# Values are read from two sources, in priority order:
#
#   1. **Environment variables** -- e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# apply when neither source defines the field.
#
# Secrets and storage locations live here.  Pipeline tuning (window sizes,
# concurrency, search limits, timeouts) lives in config/config.yaml and is
# modelled by :class:`tusk.config.pipeline.PipelineConfig`.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tusk application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Model providers ===
    # Empty string = "not configured"; the CLI factories skip providers
    # with empty keys and fall through to the next one.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = ""
    openai_vision_model: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = "llama3.1"
    ollama_vision_model: str = "llava"
    ollama_embedding_model: str = "nomic-embed-text"
    # "auto" picks OpenAI when a key is set, else Ollama.
    generation_provider: str = "auto"

    # === Storage ===
    document_db_path: str = "data/documents.db"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "tusk_chunks"

    # === Tenancy ===
    default_owner: str = "local"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the generation providers that have enough configuration to be tried."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
