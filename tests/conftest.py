from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

os.environ.setdefault("ADSYNC_HOME", tempfile.mkdtemp(prefix="adsync-tests-"))

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
