import re
from datetime import datetime, timedelta


def console(message, level="INFO"):
    """Default log sink for library code: print, like the run log does."""
    print(message)


def trim_log_by_time(log_path, retention_days=14):
    """
    Remove log entries older than retention_days.
    Returns list of lines to keep.
    """
    if not log_path.exists():
        return []

    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    cutoff_str = cutoff.strftime("%Y-%m-%d %H:%M:%S")

    kept_lines = []
    current_entry_recent = False

    with open(log_path, "r") as f:
        for line in f:
            match = re.match(r"\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\]", line)
            if match:
                current_entry_recent = match.group(1) >= cutoff_str

            if current_entry_recent:
                kept_lines.append(line)

    return kept_lines


class RunLog:
    """Log a message to both console and log buffer."""

    def __init__(self):
        self.lines = []

    def __call__(self, message, level="INFO"):
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        print(message)
        self.lines.append(f"[{timestamp}] [{level}] {message}")

    def save(self, log_path, retention_days=14):
        existing_log = trim_log_by_time(log_path, retention_days=retention_days)
        log_content = existing_log + ["\n--- New Run ---\n"] + [line + "\n" for line in self.lines]

        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "w") as f:
            f.writelines(log_content)
