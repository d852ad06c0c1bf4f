import os
from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "512"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "tasks.db")

# Comma separated, e.g. "http://localhost:5173,https://tasks.example.com"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

# Task fetch for recommendations is attempted twice with this delay in between
TASK_FETCH_ATTEMPTS = 2
TASK_FETCH_RETRY_DELAY = float(os.getenv("TASK_FETCH_RETRY_DELAY", "0.5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
