import os
import sys
from pathlib import Path

import pytest


# Ensure the repo root is on PYTHONPATH so `import deepthink` works in tests
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))


def pytest_configure(config):
    config.addinivalue_line("markers", "live: calls a real OpenAI endpoint (needs DEEPTHINK_LIVE_TESTS=1)")


# global hook: skip mark
def pytest_runtest_setup(item):
    if "live" in item.keywords:
        if os.environ.get("DEEPTHINK_LIVE_TESTS", "").strip().lower() not in {"1", "true", "yes", "y"}:
            pytest.skip("live model tests disabled")
        if not os.environ.get("OPENAI_API_KEY"):
            pytest.skip("OPENAI_API_KEY not set")
