from __future__ import annotations

from typing import Protocol

from dbf2csv.domain.dbf.models import TableHeader


class ProgressProtocol(Protocol):
    """
    Назначение/ответственность:
        Пассивный наблюдатель конвертации. Не влияет на ход выполнения и не должен падать.
    """

    def start(self, header: TableHeader) -> None:
        """
        Контракт:
            Вызывается один раз после чтения заголовка (header.record_count = оценка объёма).
        """
        ...

    def advance(self, written: int) -> None:
        """
        Контракт:
            Вызывается после каждой успешно записанной строки; written = итог на текущий момент.
        """
        ...

    def finish(self) -> None:
        ...
