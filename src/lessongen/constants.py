import os

from dotenv import load_dotenv

load_dotenv(os.getenv("ENV_FILE"), override=True)

# General
PRODUCT = os.getenv("PRODUCT", "lessongen")
VERSION = os.environ.get("VERSION", "0")
ENV = os.getenv("ENV", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

BASE_PATH = os.path.dirname(os.path.realpath(__file__))

# LLM
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.6"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))
ENABLE_LANGFUSE = os.getenv("ENABLE_LANGFUSE", "false").lower() in ("1", "true", "yes")

# Unit execution retry policy
UNIT_MAX_ATTEMPTS = int(os.getenv("UNIT_MAX_ATTEMPTS", "3"))
UNIT_RETRY_DELAY_SECONDS = float(os.getenv("UNIT_RETRY_DELAY_SECONDS", "0.5"))

# Debug reports
LESSON_DEBUG_DIR = os.getenv(
    "LESSON_DEBUG_DIR", os.path.join(os.getcwd(), "output", "debug")
)
LESSON_DEBUG_ENABLED = os.getenv("LESSON_DEBUG_ENABLED", "true").lower() in ("1", "true", "yes")
