"""
Logging for the wallet process.

Console output goes through the root logger. Optionally, records are also
written to one file per day (zenith-YYYY-MM-DD.log) under the logs dir,
and files past the retention window are pruned at startup.

Every handler installed here carries SecretRedactionFilter, so a recovery
phrase or raw key that slips into a message is masked before it is written.
"""

from datetime import date as Date, datetime, timedelta
from pathlib import Path
from typing import Optional
import logging
import re

from utils import get_logs_dir

LOG_FILE_PREFIX = "zenith-"
DATE_FORMAT = "%Y-%m-%d"

REDACTED = "[REDACTED]"

# 12+ consecutive lowercase words (BIP-39 phrases), and 64-hex keys/seeds
_PHRASE_RE = re.compile(r"\b(?:[a-z]{3,8}\s+){11,}[a-z]{3,8}\b")
_HEX_KEY_RE = re.compile(r"\b(?:0x)?[0-9a-fA-F]{64}\b")
# "[HH:MM:SS] ..." lines written without a date
_TIME_ONLY_RE = re.compile(r"^\[(\d{2}:\d{2}:\d{2})\]")

_wordlist: Optional[frozenset] = None


def _bip39_words() -> frozenset:
    global _wordlist
    if _wordlist is None:
        from wallet.phrase import wordlist
        _wordlist = frozenset(wordlist())
    return _wordlist


def _mask_wordlist_runs(match: re.Match) -> str:
    """Replace each run of 12+ consecutive BIP-39 words; neighbours stay."""
    text = match.group(0)
    known = _bip39_words()
    words = list(re.finditer(r"[a-z]+", text))
    pieces, kept_until, i = [], 0, 0
    while i < len(words):
        if words[i].group() not in known:
            i += 1
            continue
        end = i
        while end < len(words) and words[end].group() in known:
            end += 1
        if end - i >= 12:
            pieces.append(text[kept_until:words[i].start()])
            pieces.append(REDACTED)
            kept_until = words[end - 1].end()
        i = end
    pieces.append(text[kept_until:])
    return "".join(pieces)


def redact_secrets(text: str) -> str:
    """Mask mnemonic-like word runs and 64-hex strings."""
    text = _PHRASE_RE.sub(_mask_wordlist_runs, text)
    return _HEX_KEY_RE.sub(REDACTED, text)


class SecretRedactionFilter(logging.Filter):
    """Rewrites log records so secrets never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: int = logging.INFO) -> None:
    """Install a redacting console handler on the root logger, once."""
    root = logging.getLogger()
    if root.handlers:
        return

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-7s %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    ))
    console.addFilter(SecretRedactionFilter())

    root.setLevel(level)
    root.addHandler(console)


def get_log_file_path(date: Optional[datetime] = None) -> Path:
    """Daily log file for ``date``, today when omitted."""
    day = (date or datetime.now()).strftime(DATE_FORMAT)
    return get_logs_dir() / f"{LOG_FILE_PREFIX}{day}.log"


def _log_file_date(path: Path) -> Optional[Date]:
    suffix = path.stem[len(LOG_FILE_PREFIX):]
    try:
        return datetime.strptime(suffix, DATE_FORMAT).date()
    except ValueError:
        return None


def append_log(message: str, retention_days: int = 0) -> None:
    """
    Write one line to today's log file.

    Nothing is written when ``retention_days`` is zero or negative, which is
    how file logging is switched off. A leading time-only stamp gets today's
    date prepended so lines stay sortable across days.
    """
    if retention_days <= 0:
        return

    line = _TIME_ONLY_RE.sub(
        lambda m: f"[{datetime.now().strftime(DATE_FORMAT)} {m.group(1)}]",
        redact_secrets(message),
        count=1,
    )
    try:
        with get_log_file_path().open("a", encoding="utf-8") as stream:
            stream.write(f"{line}\n")
    except OSError as e:
        logging.getLogger(__name__).debug(f"Could not write log file: {e}")


def _tail(path: Path, count: int) -> list[str]:
    if count <= 0 or not path.exists():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []
    return text.splitlines()[-count:]


def load_recent_logs(max_lines: int = 500) -> list[str]:
    """Up to ``max_lines`` most recent lines, oldest first.

    Falls back to yesterday's file when today's is short.
    """
    if max_lines <= 0:
        return []

    lines = _tail(get_log_file_path(), max_lines)
    missing = max_lines - len(lines)
    if missing > 0:
        yesterday = get_log_file_path(datetime.now() - timedelta(days=1))
        lines = _tail(yesterday, missing) + lines
    return lines


def cleanup_old_logs(retention_days: int) -> int:
    """Delete daily files dated before the retention window; returns how many."""
    if retention_days < 0:
        return 0

    cutoff = (datetime.now() - timedelta(days=retention_days)).date()
    removed = 0
    for path in sorted(get_logs_dir().glob(f"{LOG_FILE_PREFIX}*.log")):
        day = _log_file_date(path)
        if day is None or day >= cutoff:
            continue
        try:
            path.unlink()
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not remove {path.name}: {e}")
            continue
        removed += 1
    return removed


class DailyFileHandler(logging.Handler):
    """Routes log records into the daily log file."""

    def __init__(self, retention_days: int):
        super().__init__()
        self.retention_days = retention_days
        self.setFormatter(logging.Formatter('[%(asctime)s] %(name)s: %(message)s', datefmt='%H:%M:%S'))
        self.addFilter(SecretRedactionFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            append_log(self.format(record), self.retention_days)
        except Exception:
            self.handleError(record)


def enable_file_logging(retention_days: int, level: int = logging.INFO) -> Optional[DailyFileHandler]:
    """Attach the daily file handler to the root logger and prune old files."""
    if retention_days <= 0:
        return None
    cleanup_old_logs(retention_days)
    handler = DailyFileHandler(retention_days)
    handler.setLevel(level)
    logging.getLogger().addHandler(handler)
    return handler
