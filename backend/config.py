import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(dotenv_path="../.env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Configuration settings for the compliance assistant backend"""
    # Anthropic API settings
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

    # Embedding model settings
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")

    # Generation settings (passed through to the provider unchanged)
    TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
    TOP_K: int = int(os.getenv("TOP_K", "40"))
    TOP_P: float = float(os.getenv("TOP_P", "0.95"))
    MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "1024"))

    # Document processing settings
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "800"))        # Size of text chunks for vector storage
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "100"))  # Characters to overlap between chunks
    DOCS_PATH: str = os.getenv("DOCS_PATH", "../docs")

    # Retrieval settings
    MAX_RESULTS: int = int(os.getenv("MAX_RESULTS", "3"))        # Snippets retrieved per question
    STRICT_RETRIEVAL: bool = _env_bool("STRICT_RETRIEVAL")
    MIN_SIMILARITY: float = float(os.getenv("MIN_SIMILARITY", "0.0"))

    # Conversation settings
    MAX_HISTORY: int = int(os.getenv("MAX_HISTORY", "2"))        # Exchanges kept for transcript history

    # Snapshot location; empty string disables persistence
    SNAPSHOT_PATH: str = os.getenv("SNAPSHOT_PATH", "./vector_index.json")

config = Config()
