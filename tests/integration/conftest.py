"""Live test configuration — loads .env for GOOGLE_AI_API_KEY."""

from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent.parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
