import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    try:
        value = float(os.getenv(name, default))
    except (TypeError, ValueError):
        value = default
    return max(minimum, value)


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4o-mini").strip()

# "heuristic" keeps the service usable offline; "llm" routes through OpenAI
SCORER_BACKEND = str(os.getenv("SCORER_BACKEND") or "heuristic").strip().lower()
QUESTION_BACKEND = str(os.getenv("QUESTION_BACKEND") or "static").strip().lower()

# Window between a termination-triggering violation and the actual termination.
INTEGRITY_GRACE_DELAY_SEC = _env_float("INTEGRITY_GRACE_DELAY_SEC", 1.0)
SCORING_TIMEOUT_SEC = _env_float("SCORING_TIMEOUT_SEC", 15.0, minimum=0.5)
LATE_SUBMIT_TIMEOUT_SEC = _env_float("LATE_SUBMIT_TIMEOUT_SEC", 3.0, minimum=0.1)
CORRECTNESS_THRESHOLD = _env_float("CORRECTNESS_THRESHOLD", 60.0)
CLOCK_TICK_SEC = _env_float("CLOCK_TICK_SEC", 1.0, minimum=0.001)

DEFAULT_INTERVIEW_MODE = str(os.getenv("DEFAULT_INTERVIEW_MODE") or "proctored").strip().lower()
INTERVIEW_STORE_PATH = Path(
    os.getenv("INTERVIEW_STORE_PATH") or (_BACKEND_ROOT / "data" / "interview_store.json")
)
MAX_RESUME_BYTES = max(1024, int(_env_float("MAX_RESUME_BYTES", 5 * 1024 * 1024)))
