# config/settings.py
import os
from pathlib import Path
from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """전역 설정

    Values are read from the environment when the instance is created, so
    tests can build a fresh Settings() after patching os.environ.
    """

    # 업로드 정책 (요청별 설정 아님)
    ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tif", ".tiff", ".bmp")
    TILE_ENGINES = ("pillow", "vips")
    REGISTRY_BACKENDS = ("json", "postgres")

    # API 설정
    API_TITLE = "DZI Ingest Backend"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = "Chunked image upload and Deep Zoom tile pyramid generation"

    def __init__(self):
        # 프로젝트 루트
        self.BASE_DIR = Path(__file__).resolve().parent.parent

        # 데이터 디렉토리
        self.DATA_DIR = Path(os.getenv("DATA_DIR", self.BASE_DIR / "data"))
        self.UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", self.DATA_DIR / "uploads"))
        self.TILES_DIR = Path(os.getenv("TILES_DIR", self.DATA_DIR / "tiles" / "uploaded"))
        self.REGISTRY_PATH = Path(os.getenv("REGISTRY_PATH", self.DATA_DIR / "uploaded_images.json"))

        # Viewer-facing prefix for descriptor locations
        self.DZI_URL_PREFIX = os.getenv("DZI_URL_PREFIX", "./tiles/uploaded").rstrip("/")

        # 타일 엔진 설정
        # - pillow: in-process, thread pool
        # - vips: `vips dzsave` subprocess
        self.TILE_ENGINE = os.getenv("TILE_ENGINE", "pillow")
        self.VIPS_PATH = os.getenv("VIPS_PATH", "vips")
        self.TILE_SIZE = int(os.getenv("TILE_SIZE", "256"))
        self.TILE_OVERLAP = int(os.getenv("TILE_OVERLAP", "2"))
        self.TILE_FORMAT = os.getenv("TILE_FORMAT", "jpeg").lower()
        self.TILE_QUALITY = int(os.getenv("TILE_QUALITY", "80"))
        self.TILE_WORKERS = int(os.getenv("TILE_WORKERS", "2"))

        # 레지스트리 설정
        self.REGISTRY_BACKEND = os.getenv("REGISTRY_BACKEND", "json")
        self.POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
        self.POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
        self.POSTGRES_DB = os.getenv("POSTGRES_DB", "dzi_db")
        self.POSTGRES_USER = os.getenv("POSTGRES_USER", "dzi_service")
        self.POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "")

        # 세션 만료
        self.SESSION_TTL_HOURS = float(os.getenv("SESSION_TTL_HOURS", "24"))
        self.SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", "600"))

        # 업로드 제한 (0 = 제한 없음)
        self.MAX_TOTAL_CHUNKS = int(os.getenv("MAX_TOTAL_CHUNKS", "10000"))
        self.MAX_CHUNK_BYTES = int(os.getenv("MAX_CHUNK_BYTES", str(64 * 1024 * 1024)))

        # true: chunks are kept until the whole pipeline finishes
        self.DEFER_CHUNK_CLEANUP = _env_bool("DEFER_CHUNK_CLEANUP")

        # CORS
        self.CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

        # 로깅
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_TO_FILE = _env_bool("LOG_TO_FILE", "true")

        # 서버 포트
        self.SERVER_PORT = int(os.getenv("SERVER_PORT", "5174"))

    def validate(self):
        """설정 검증"""
        if self.TILE_ENGINE not in self.TILE_ENGINES:
            raise ValueError(f"Invalid TILE_ENGINE '{self.TILE_ENGINE}', must be one of {self.TILE_ENGINES}")

        if self.REGISTRY_BACKEND not in self.REGISTRY_BACKENDS:
            raise ValueError(
                f"Invalid REGISTRY_BACKEND '{self.REGISTRY_BACKEND}', must be one of {self.REGISTRY_BACKENDS}"
            )

        if self.TILE_SIZE <= 0:
            raise ValueError(f"TILE_SIZE must be positive, got {self.TILE_SIZE}")

        if self.TILE_OVERLAP < 0 or self.TILE_OVERLAP >= self.TILE_SIZE:
            raise ValueError(f"TILE_OVERLAP must be in [0, TILE_SIZE), got {self.TILE_OVERLAP}")

        if self.TILE_FORMAT not in ("jpeg", "png"):
            raise ValueError(f"TILE_FORMAT must be 'jpeg' or 'png', got '{self.TILE_FORMAT}'")

        if self.TILE_WORKERS < 1:
            raise ValueError(f"TILE_WORKERS must be >= 1, got {self.TILE_WORKERS}")

        if self.TILE_ENGINE == "vips" and not Path(self.VIPS_PATH).is_absolute():
            print(f"[Settings] vips 모드: PATH에서 '{self.VIPS_PATH}' 사용")

        return self


settings = Settings()
settings.validate()
