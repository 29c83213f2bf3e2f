import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Empty project directory with a ``contents/`` folder as cwd."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "contents").mkdir()
    return tmp_path


@pytest.fixture
def write_doc(project):
    def write(name, text):
        path = project / "contents" / f"{name}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    return write
