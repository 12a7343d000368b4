from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class GatewaySettings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    request_timeout_s: float = 300.0
    debug: bool = False
    log_level: str = "INFO"

    model_config = {"env_prefix": "GATEWAY_"}


class AudioSettings(BaseSettings):
    format: str = "bestaudio"
    timeout_s: float = 90.0
    ytdlp_args: list[str] = []

    model_config = {"env_prefix": "AUDIO_"}


class ASRSettings(BaseSettings):
    api_key: str = Field(default="", validation_alias="DEEPGRAM_API_KEY")
    url: str = "https://api.deepgram.com/v1/listen"
    model: str = ""
    content_type: str = "audio/*"
    timeout_s: float = 120.0
    max_body_bytes: int = 100 * 1024 * 1024
    utt_split: float = 5.0

    model_config = {"env_prefix": "ASR_", "populate_by_name": True}


class SLMSettings(BaseSettings):
    api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model_name: str = "gemini-2.0-flash"
    temperature: float = 0.1
    top_k: int = 1
    top_p: float = 1.0
    max_tokens: int = 8192
    timeout_s: float = 80.0

    model_config = {"env_prefix": "SLM_", "populate_by_name": True, "protected_namespaces": ()}


class AppSettings:
    """Configuration for one gateway process, built once at startup."""

    def __init__(
        self,
        gateway: GatewaySettings | None = None,
        audio: AudioSettings | None = None,
        asr: ASRSettings | None = None,
        slm: SLMSettings | None = None,
    ) -> None:
        self.gateway = gateway or GatewaySettings()
        self.audio = audio or AudioSettings()
        self.asr = asr or ASRSettings()
        self.slm = slm or SLMSettings()

    def missing_credentials(self) -> list[str]:
        """Names of the required API key variables that are unset."""
        missing = []
        if not self.asr.api_key:
            missing.append("DEEPGRAM_API_KEY")
        if not self.slm.api_key:
            missing.append("GEMINI_API_KEY")
        return missing
