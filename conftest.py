import pathlib
import sys

# Ensure the flat modules at the repo root are importable regardless of cwd
REPO_ROOT = pathlib.Path(__file__).resolve().parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def pytest_ignore_collect(collection_path, config):
    # Accept both py.path.local (pytest<9) and pathlib.Path (pytest>=9)
    p = pathlib.Path(str(collection_path))
    # Ignore virtualenvs, build output and run logs
    for part in p.parts:
        if part in {".venv", "dist", "build", "logs"}:
            return True
    return False
