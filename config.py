import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Rutas
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("IDSNOTE_DATA_DIR", str(BASE_DIR / "data")))
RECORDINGS_DIR = DATA_DIR / "recordings"
DB_PATH = DATA_DIR / "ids_normal_notes.db"
STATIC_DIR = BASE_DIR / "static"

# Servidor
HOST = "127.0.0.1"
PORT = 8787

# Audio
SAMPLE_RATE = 16000
CHANNELS = 1
AUDIO_FORMAT = os.getenv("IDSNOTE_AUDIO_FORMAT", "mp3")

# Dispositivo de entrada (None = autodetectar)
MIC_DEVICE_INDEX = None

# Whisper
WHISPER_MODEL = os.getenv("IDSNOTE_WHISPER_MODEL", "base")
WHISPER_LANGUAGE = os.getenv("IDSNOTE_LANGUAGE", "en")
PARTIAL_INTERVAL_SECS = float(os.getenv("IDSNOTE_PARTIAL_INTERVAL", "1.0"))

# Logging
LOG_LEVEL = os.getenv("IDSNOTE_LOG_LEVEL", "INFO")
