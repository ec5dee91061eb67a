"""
Log management: leveled logging, one file per process run, size/age cleanup.

Handlers are attached once to the application logger namespaces (`src`,
`scripts`, `uvicorn`) so library modules can keep using
`logging.getLogger(__name__)` and still end up in the run log. Lines emitted
inside `log_context(user=..., chat=...)` carry those fields.
"""
import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterator

DEFAULT_LEVEL = "INFO"
DEFAULT_MAX_SIZE_MB = 100
DEFAULT_MAX_AGE_DAYS = 30
DEFAULT_MIN_KEEP_MB = 20
DEFAULT_CONSOLE_OUTPUT = True
LOG_DIR_NAME = "app"
APP_NAMESPACES = ("src", "scripts", "uvicorn")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Fields bound by `log_context` (user, chat, model ...) and rendered into every line.
_CONTEXT: ContextVar[dict[str, Any]] = ContextVar("mitra_log_context", default={})


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind `fields` to every log line emitted inside the block (nested blocks merge)."""
    token = _CONTEXT.set({**_CONTEXT.get(), **fields})
    try:
        yield
    finally:
        _CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    """Adds `record.ctx`, e.g. "user=alice chat=12", or "-" outside any context."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _CONTEXT.get()
        record.ctx = " ".join(f"{k}={v}" for k, v in ctx.items() if v is not None) or "-"
        return True


class LogManager:
    """
    Console + file logging for one process run. The run file is named after
    the start time; `cleanup()` keeps the log directory under `max_size_mb`
    and drops files older than `max_age_days`, but never touches anything
    while the directory is smaller than `min_keep_mb`.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        config = config or {}
        self.log_dir = Path(config["log_dir"]) if config.get("log_dir") else _PROJECT_ROOT / "logs" / LOG_DIR_NAME
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.max_size_mb = int(config.get("max_size_mb", DEFAULT_MAX_SIZE_MB))
        self.max_age_days = int(config.get("max_age_days", DEFAULT_MAX_AGE_DAYS))
        self.min_keep_mb = int(config.get("min_keep_mb", DEFAULT_MIN_KEEP_MB))
        self.console_output = config.get("console_output", DEFAULT_CONSOLE_OUTPUT)
        level_name = (config.get("level") or DEFAULT_LEVEL).upper()
        self.level = getattr(logging, level_name, logging.INFO)

        self._run_log_path: Path | None = None
        self._handlers: list[logging.Handler] = []
        self._context_filter = ContextFilter()
        self._formatter = logging.Formatter(
            "%(asctime)s.%(msecs)03d | %(levelname)s | %(name)s | %(ctx)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    @property
    def run_file(self) -> Path:
        if self._run_log_path is None:
            self._run_log_path = self.log_dir / datetime.now().strftime("%Y-%m-%d_%H-%M-%S.log")
        return self._run_log_path

    def _build_handlers(self) -> list[logging.Handler]:
        if self._handlers:
            return self._handlers
        if self.console_output:
            ch = logging.StreamHandler()
            ch.setLevel(self.level)
            ch.setFormatter(self._formatter)
            ch.addFilter(self._context_filter)
            self._handlers.append(ch)
        fh = logging.FileHandler(self.run_file, encoding="utf-8")
        fh.setLevel(self.level)
        fh.setFormatter(self._formatter)
        fh.addFilter(self._context_filter)
        self._handlers.append(fh)
        return self._handlers

    def attach(self, namespace: str) -> logging.Logger:
        """Bind the run handlers to `namespace` (idempotent)."""
        logger = logging.getLogger(namespace)
        handlers = self._build_handlers()
        if not any(h in logger.handlers for h in handlers):
            logger.setLevel(self.level)
            logger.propagate = False
            for h in handlers:
                logger.addHandler(h)
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        top = name.split(".", 1)[0]
        self.attach(top if top in APP_NAMESPACES else name)
        return logging.getLogger(name)

    def close(self) -> None:
        for ns in APP_NAMESPACES:
            logger = logging.getLogger(ns)
            for h in self._handlers:
                logger.removeHandler(h)
        for h in self._handlers:
            h.close()
        self._handlers = []

    def cleanup(self) -> dict[str, Any]:
        report: dict[str, Any] = {"deleted_by_age": [], "deleted_by_size": [], "remaining_mb": 0.0}
        if not self.log_dir.exists():
            return report

        log_files = sorted(
            (f for f in self.log_dir.iterdir() if f.is_file() and f.suffix == ".log" and f != self._run_log_path),
            key=lambda p: p.stat().st_mtime,
        )
        total = sum(f.stat().st_size for f in log_files)
        if total < self.min_keep_mb * 1024 * 1024:
            report["remaining_mb"] = total / (1024 * 1024)
            return report

        cutoff = datetime.now() - timedelta(days=self.max_age_days)
        remaining: list[Path] = []
        for f in log_files:
            if datetime.fromtimestamp(f.stat().st_mtime) < cutoff:
                report["deleted_by_age"].append(f.name)
                f.unlink()
            else:
                remaining.append(f)

        max_bytes = self.max_size_mb * 1024 * 1024
        while remaining and sum(f.stat().st_size for f in remaining) > max_bytes:
            oldest = remaining.pop(0)
            report["deleted_by_size"].append(oldest.name)
            oldest.unlink()

        report["remaining_mb"] = sum(f.stat().st_size for f in remaining) / (1024 * 1024)
        return report


_manager: LogManager | None = None


def _load_logging_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    cfg = json.loads(path.read_text(encoding="utf-8")).get("logging") or {}
    local_path = path.with_name(f"{path.stem}.local{path.suffix}")
    if local_path.exists():
        local_cfg = json.loads(local_path.read_text(encoding="utf-8")).get("logging") or {}
        cfg = {**cfg, **local_cfg}
    return cfg


def init_logging(config: dict[str, Any] | None = None, config_path: str | Path | None = None) -> LogManager:
    """(Re)initialize logging from `config`, `config_path` or config/app_config.json."""
    global _manager
    cfg = config
    if cfg is None:
        path = Path(config_path) if config_path is not None else _PROJECT_ROOT / "config" / "app_config.json"
        cfg = _load_logging_config(path)
    if _manager is not None:
        _manager.close()
    _manager = LogManager(cfg)
    for ns in APP_NAMESPACES:
        _manager.attach(ns)
    return _manager


def get_logger(name: str, config: dict[str, Any] | None = None) -> logging.Logger:
    if _manager is None:
        init_logging(config=config)
    return _manager.get_logger(name)


def cleanup_logs(config: dict[str, Any] | None = None) -> dict[str, Any]:
    if _manager is None:
        init_logging(config=config)
    return _manager.cleanup()
