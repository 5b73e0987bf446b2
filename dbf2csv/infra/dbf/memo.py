from __future__ import annotations

import struct
from pathlib import Path
from typing import BinaryIO

DBT_HEADER_SIZE = 512
DBT3_BLOCK_SIZE = 512
DBT4_BLOCK_START = b"\xff\xff\x08\x00"
DBT_TERMINATOR = b"\x1a"
FPT_HEADER_SIZE = 512
FPT_BLOCK_HEADER_SIZE = 8


def findMemoPath(tablePath: Path, foxpro: bool) -> Path | None:
    """
    Назначение:
        Ищет memo-файл рядом с таблицей: то же имя, суффикс .fpt (FoxPro) или .dbt,
        регистр суффикса любой.
    """
    wanted = ".fpt" if foxpro else ".dbt"
    for candidate in (tablePath.with_suffix(wanted), tablePath.with_suffix(wanted.upper())):
        if candidate.is_file():
            return candidate
    if tablePath.parent.is_dir():
        for candidate in sorted(tablePath.parent.iterdir()):
            if candidate.stem == tablePath.stem and candidate.suffix.lower() == wanted and candidate.is_file():
                return candidate
    return None


class MemoFile:
    """
    Назначение/ответственность:
        Извлечение текста memo по номеру блока из .dbt (dBASE III/IV) или .fpt (FoxPro).
        Возвращает сырые байты; декодирование делает FieldParser кодировкой таблицы.

    Ошибки:
        ValueError, если блок за пределами файла или повреждён.
    """

    def __init__(self, path: Path, handle: BinaryIO, foxpro: bool, blockSize: int) -> None:
        self.path = path
        self.handle = handle
        self.foxpro = foxpro
        self.blockSize = blockSize
        self.size = path.stat().st_size

    @classmethod
    def open(cls, path: Path, foxpro: bool) -> "MemoFile":
        handle = open(path, "rb")
        try:
            header = handle.read(DBT_HEADER_SIZE)
            if foxpro:
                if len(header) < 8:
                    raise ValueError(f"Memo header too short: {path}")
                blockSize = struct.unpack(">H", header[6:8])[0]
            else:
                blockSize = 0
                if len(header) >= 22:
                    blockSize = struct.unpack("<H", header[20:22])[0]
                blockSize = blockSize or DBT3_BLOCK_SIZE
            if blockSize <= 0:
                raise ValueError(f"Invalid memo block size {blockSize}: {path}")
        except BaseException:
            handle.close()
            raise
        return cls(path, handle, foxpro, blockSize)

    def read(self, block: int) -> bytes:
        start = block * self.blockSize
        if start >= self.size:
            raise ValueError(f"Memo block {block} is outside of {self.path.name}")
        self.handle.seek(start)
        if self.foxpro:
            return self._readFpt(block)
        head = self.handle.read(len(DBT4_BLOCK_START) + 4)
        if head[:4] == DBT4_BLOCK_START:
            length = struct.unpack("<I", head[4:8])[0]
            return self.handle.read(max(length - len(head), 0))
        self.handle.seek(start)
        return self._readDbt3()

    def _readFpt(self, block: int) -> bytes:
        head = self.handle.read(FPT_BLOCK_HEADER_SIZE)
        if len(head) < FPT_BLOCK_HEADER_SIZE:
            raise ValueError(f"Truncated memo block {block} in {self.path.name}")
        _kind, length = struct.unpack(">II", head)
        data = self.handle.read(length)
        if len(data) < length:
            raise ValueError(f"Truncated memo block {block} in {self.path.name}")
        return data

    def _readDbt3(self) -> bytes:
        chunks: list[bytes] = []
        while True:
            chunk = self.handle.read(DBT3_BLOCK_SIZE)
            if not chunk:
                break
            end = chunk.find(DBT_TERMINATOR)
            if end >= 0:
                chunks.append(chunk[:end])
                break
            chunks.append(chunk)
        return b"".join(chunks)

    def close(self) -> None:
        self.handle.close()
