from __future__ import annotations

from collections import deque
from datetime import datetime, timezone


class LoggerService:
    def __init__(self, max_rows: int = 2000) -> None:
        self.rows: deque[dict[str, object]] = deque(maxlen=max_rows)

    def log(self, event: str, **data: object) -> None:
        row = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "event": event,
            "data": data,
        }
        self.rows.append(row)
        print(f"[{row['ts']}] {event} {data}")

    def events(self) -> list[str]:
        return [str(row["event"]) for row in self.rows]
