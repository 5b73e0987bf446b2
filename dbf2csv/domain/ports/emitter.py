from __future__ import annotations

from typing import Protocol, Sequence


class RowEmitterProtocol(Protocol):
    """
    Назначение/ответственность:
        Приёмник строк конвертации. Владеет буферизацией, разделителем/кавычками
        и сбросом на диск.
    Взаимодействия:
        Вызывается ConvertUseCase: emit_header один раз, emit_row один раз на запись,
        затем close() при успехе или abort() при любой ошибке.
    """

    def emit_header(self, names: Sequence[str]) -> None:
        """
        Контракт:
            Вход: имена полей в порядке дескрипторов.
            Ошибки: SinkError.
        """
        ...

    def emit_row(self, values: Sequence[str]) -> None:
        """
        Контракт:
            Вход: нормализованные значения в порядке дескрипторов.
            Ошибки: SinkError.
        """
        ...

    def close(self) -> None:
        """
        Контракт:
            Сбросить буферы и опубликовать результат. Ошибки: SinkError.
        """
        ...

    def abort(self) -> None:
        """
        Контракт:
            Отбросить всё записанное; не должен маскировать исходную ошибку.
        """
        ...
