# core/config.py
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Config:
    # Inference providers
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    HF_API_TOKEN = os.getenv("HF_API_TOKEN", "")
    CAPTION_PROVIDER = os.getenv("CAPTION_PROVIDER", "gemini").lower()

    OPENAI_TEXT_MODEL = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini")
    GEMINI_TEXT_MODEL = os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash")
    GEMINI_VISION_MODEL = os.getenv("GEMINI_VISION_MODEL", "gemini-2.5-flash")

    # Generation loop
    CAPTION_MAX_ATTEMPTS = _int_env("CAPTION_MAX_ATTEMPTS", 3)
    CAPTION_TOP_VARIANTS = _int_env("CAPTION_TOP_VARIANTS", 2)
    CAPTION_VARIANT_COUNT = _int_env("CAPTION_VARIANT_COUNT", 5)
    INFERENCE_TIMEOUT_SECONDS = _float_env("INFERENCE_TIMEOUT_SECONDS", 30.0)

    # Image handling
    IMAGE_FETCH_TIMEOUT_SECONDS = _float_env("IMAGE_FETCH_TIMEOUT_SECONDS", 15.0)
    IMAGE_MAX_BYTES = _int_env("IMAGE_MAX_BYTES", 10 * 1024 * 1024)
    IMAGE_MAX_EDGE = _int_env("IMAGE_MAX_EDGE", 1536)

    # NSFW fallback (Hugging Face inference API)
    HF_API_BASE = os.getenv("HF_API_BASE", "https://api-inference.huggingface.co/models")
    HF_NSFW_MODEL = os.getenv("HF_NSFW_MODEL", "Falconsai/nsfw_image_detection")
    HF_CAPTION_MODEL = os.getenv("HF_CAPTION_MODEL", "Salesforce/blip-image-captioning-large")
    NSFW_THRESHOLD = _float_env("NSFW_THRESHOLD", 0.5)

    # Creator profiles (promotion links)
    PROFILES_DIR = Path(os.getenv("PROFILES_DIR", str(BASE_DIR / "personas")))

    # General
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"
    LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
    LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"
    BASE_DIR = BASE_DIR


@dataclass(frozen=True)
class PipelineSettings:
    """Per-request snapshot of the tunables the generation loop reads."""

    max_attempts: int = 3
    top_variants: int = 2
    variant_count: int = 5
    inference_timeout: float = 30.0
    image_fetch_timeout: float = 15.0
    image_max_bytes: int = 10 * 1024 * 1024
    image_max_edge: int = 1536
    nsfw_threshold: float = 0.5

    @classmethod
    def from_config(cls) -> "PipelineSettings":
        return cls(
            max_attempts=max(1, Config.CAPTION_MAX_ATTEMPTS),
            top_variants=max(1, Config.CAPTION_TOP_VARIANTS),
            variant_count=max(1, Config.CAPTION_VARIANT_COUNT),
            inference_timeout=Config.INFERENCE_TIMEOUT_SECONDS,
            image_fetch_timeout=Config.IMAGE_FETCH_TIMEOUT_SECONDS,
            image_max_bytes=Config.IMAGE_MAX_BYTES,
            image_max_edge=Config.IMAGE_MAX_EDGE,
            nsfw_threshold=Config.NSFW_THRESHOLD,
        )


if __name__ == "__main__":
    # Sanity check
    print("Config loaded from:", ENV_PATH)
    print("Caption provider:", Config.CAPTION_PROVIDER)
    print("Settings:", PipelineSettings.from_config())
