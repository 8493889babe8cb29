"""История выводов сканеров по паре (сканер, хост)."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Optional

from tlsprobe.models import Output


class History:
    """Журнал выводов, только на дописывание.

    Записи никогда не изменяются и не удаляются. Дописывания сериализуются
    замком, поэтому при параллельном сканировании хостов порядок внутри
    одного ключа совпадает с порядком завершения сканов.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], list[Output]] = defaultdict(list)
        self._lock = threading.Lock()

    def store(self, scanner: str, host: str, output: Output) -> None:
        """Дописать вывод в историю пары (сканер, хост)."""
        with self._lock:
            self._entries[(scanner, host)].append(output)

    def get_all(self, scanner: str, host: str) -> list[Output]:
        """Все выводы пары в порядке вызовов. Пустой список — истории нет."""
        with self._lock:
            return list(self._entries.get((scanner, host), ()))

    def get_latest(self, scanner: str, host: str) -> Optional[Output]:
        """Последний вывод пары или None."""
        with self._lock:
            outputs = self._entries.get((scanner, host))
            return outputs[-1] if outputs else None

    def keys(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._entries.values())

    def __repr__(self) -> str:
        return f"<History keys={len(self.keys())} outputs={len(self)}>"
