"""Configuration management for Manual Navigator."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
SCALEDOWN_API_KEY = os.getenv("SCALEDOWN_API_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Compression service
SCALEDOWN_API_URL = os.getenv("SCALEDOWN_API_URL", "https://api.scaledown.xyz/compress/raw/")
SCALEDOWN_MODEL = os.getenv("SCALEDOWN_MODEL", "gpt-4o")
SCALEDOWN_TIMEOUT = float(os.getenv("SCALEDOWN_TIMEOUT", "60"))
COMPRESSION_RATE = 0.95  # keep ~95% of the content, only tighten formatting
COMPRESSION_MIN_LENGTH = 50  # shorter pages bypass compression
COMPRESSION_MIN_RESULT_LENGTH = 10

# Model Configuration
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.3-70b-versatile")
CATEGORIZER_MODEL = os.getenv("CATEGORIZER_MODEL", CHAT_MODEL)
VISION_MODEL = os.getenv("VISION_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")

# Text reconstruction
ROW_TOLERANCE = 8.0  # points
CONTIGUOUS_GAP = 2.0
COLUMN_GAP = 15.0
OCR_MIN_TEXT_LENGTH = 100

# Retrieval Configuration
MAX_RAW_CONTEXT_CHARS = 30000
SEARCH_RESULT_LIMIT = 20

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
