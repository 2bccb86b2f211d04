from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    default_units: float = float(os.getenv("GRADECALC_DEFAULT_UNITS", "3"))
    final_weight: float = float(os.getenv("GRADECALC_FINAL_WEIGHT", "20"))
    passing_exam_percent: float = float(os.getenv("GRADECALC_PASSING_EXAM_PERCENT", "60"))
    min_exams_passed: int = int(os.getenv("GRADECALC_MIN_EXAMS_PASSED", "2"))
    min_prefinal_percent: float = float(os.getenv("GRADECALC_MIN_PREFINAL_PERCENT", "72"))

    log_level: str = os.getenv("GRADECALC_LOG_LEVEL", "INFO").upper()

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )


settings = Settings()
