from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

LOGS_DIR = Path(os.getenv("TRADEGATE_LOG_DIR", PROJECT_ROOT / "logs"))
APP_LOG_FILE = LOGS_DIR / "tradegate.log"
