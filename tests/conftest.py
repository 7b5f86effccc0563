import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from tripmaker import event_log  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_event_log(tmp_path):
    """Keep audit events written during tests inside tmp_path."""
    path = tmp_path / "events.jsonl"
    event_log.configure(path)
    yield path
    event_log.configure(None)
