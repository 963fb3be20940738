from pydantic import field_validator
from pydantic_settings import BaseSettings

FREE_TIER_MAX_BYTES = 1024 * 1024  # 1MiB
PREMIUM_TIER_MAX_BYTES = 5 * 1024 * 1024  # 5MiB


class Settings(BaseSettings):
    # OCR backend selection: auto | local | remote | mistral
    ocr_backend: str = "auto"
    ocr_languages: list[str] = ["spa", "eng"]

    @field_validator("ocr_backend", mode="before")
    @classmethod
    def normalize_backend_name(cls, v: str) -> str:
        """Accept mixed-case backend names from the environment."""
        return v.strip().lower() if isinstance(v, str) else v

    # OCR.space (remote)
    ocr_space_api_key: str = ""
    ocr_space_url: str = "https://api.ocr.space/parse/image"
    ocr_space_engine: int = 2
    ocr_space_premium: bool = False

    # Remote OCR budget and retry policy
    remote_ocr_max_pages: int = 4
    remote_ocr_max_attempts: int = 3
    remote_ocr_retry_wait_seconds: float = 1.0
    remote_ocr_timeout_seconds: float = 60.0

    # Mistral OCR (remote)
    mistral_api_key: str = ""
    mistral_ocr_model: str = "mistral-ocr-latest"

    # Tesseract (local)
    tesseract_cmd: str | None = None

    # Native text layer heuristics
    native_text_min_chars: int = 200
    scanned_char_ratio: float = 0.15  # 0.08 is the stricter alternative

    # Rendering
    render_scale: float = 1.5  # Transmission-bound pages (remote OCR)
    ocr_render_scale: float = 2.0  # Recognition-bound pages (local OCR)
    jpeg_quality: int = 75
    compressed_jpeg_quality: int = 60

    # Analysis hand-off
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-5-20250929"
    analysis_max_chars: int = 50000
    analysis_max_tokens: int = 4096

    # HTTP host
    max_upload_size_bytes: int = 20 * 1024 * 1024  # 20MB
    cors_origins: list[str] = ["http://localhost:3000"]

    # Rate limiting (protects metered OCR quota)
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    rate_limit_general_per_minute: int = 60
    rate_limit_extract_per_minute: int = 10

    @property
    def remote_ocr_max_bytes(self) -> int:
        """Payload ceiling for the OCR.space tier in use."""
        return PREMIUM_TIER_MAX_BYTES if self.ocr_space_premium else FREE_TIER_MAX_BYTES

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
