from pathlib import Path


def write(root: Path, rel: str, content) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


def tree(root: Path) -> set:
    """Every file under ``root`` as POSIX paths relative to it."""
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


class FakeObserver:
    """Records scheduled directories instead of watching them."""

    def __init__(self):
        self.scheduled = []
        self.started = self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append(Path(path))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass
