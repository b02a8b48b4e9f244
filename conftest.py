# Root conftest: make `src` and `config` importable and keep logs out of the repo
import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
os.environ.setdefault("LST_LOG_DIR", tempfile.mkdtemp(prefix="lst_logs_"))
os.environ.setdefault("SILENT_MODE", "true")
