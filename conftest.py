import os
import sys
from pathlib import Path

# סביבת בדיקות בטוחה: בלי חיבור אמיתי ל-Mongo/S3, לוגים לקונסול
os.environ.setdefault("SNIPO_MONGODB_URL", "mongodb://localhost:27017/snipo_test")
os.environ.setdefault("SNIPO_S3_ENABLED", "false")
os.environ.setdefault("SNIPO_LOG_FORMAT", "console")

_ROOT = Path(__file__).parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))
