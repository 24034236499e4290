import sys
from pathlib import Path

import pytest

# Ensure the src layout imports cleanly when the package is not installed.
SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from assetpipe.orchestrator.config import BuildConfig, build_config  # noqa: E402


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def make_config(project: Path):
    def _make(production: bool = False, **data) -> BuildConfig:
        return build_config(data, root=project, production=production)

    return _make


@pytest.fixture
def coffee_stub(tmp_path: Path) -> list:
    """A stand-in CoffeeScript compiler that prints fixed JavaScript."""
    stub = tmp_path / "coffee_stub.py"
    stub.write_text(
        "import sys\n"
        "src = open(sys.argv[1]).read()\n"
        "if 'syntax error' in src:\n"
        "    sys.stderr.write('unexpected token')\n"
        "    sys.exit(1)\n"
        "print('var fromCoffee = true;')\n",
        encoding="utf-8",
    )
    return [sys.executable, str(stub)]
