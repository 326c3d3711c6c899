"""
Constants and paths shared across the sample app.
"""

import os
from pathlib import Path

# Base paths
BASE_DIR = Path(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
RESOURCES_DIR = BASE_DIR / "resources"
LOGS_DIR = Path(os.environ.get("RECOMMENDATIONS_SAMPLE_LOGS", BASE_DIR / "logs"))
