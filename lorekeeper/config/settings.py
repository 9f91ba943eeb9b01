"""Application settings loaded from environment variables via pydantic-settings.

Field names map to upper-cased environment variables (``llm_api_key`` ->
``LLM_API_KEY``).  A ``.env`` file in the working directory is read as a
lower-priority source; real environment variables always win.  Defaults
apply when neither source sets a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """lorekeeper settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Text-understanding service ===
    # "http" posts directly to llm_api_url; "openai" uses the openai SDK.
    llm_provider: str = "http"
    llm_api_url: str = "https://api.openai.com/v1/chat/completions"
    llm_base_url: str = ""  # Custom base URL for the openai SDK (compatible APIs)
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_timeout: float = 120.0

    # === Segmentation ===
    max_chunk_length: int = 3000
    min_chunk_length: int = 50
    metadata_keyword_threshold: int = 3

    # === Pacing / retry ===
    extraction_request_delay: float = 0.5
    merge_request_delay: float = 2.0
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0

    # === Persistence ===
    knowledge_db_path: str = "data/knowledge.db"
    checkpoint_path: str = "data/extraction_checkpoint.json"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the provider kinds usable with the current credentials."""
        if not self.llm_api_key:
            return []
        return ["http", "openai"]
