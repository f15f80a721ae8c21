import os
import tempfile

# must run before any `app.*` import: settings are read at import time
_DB_DIR = tempfile.mkdtemp(prefix="transcript-insights-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["LLM_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = ""
os.environ["WHISPER_API_KEY"] = ""
os.environ["YLC_WHISPER_LOCAL"] = "0"

from app.db.session import init_db  # noqa: E402

init_db()
