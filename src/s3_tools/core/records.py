"""Newline-delimited JSON output for audit and export."""

from typing import TextIO

from pydantic import BaseModel


class RecordWriter:
    """Writes one JSON document per line to a text stream."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.count = 0

    def write(self, record: BaseModel) -> None:
        self.stream.write(record.model_dump_json(exclude_none=True))
        self.stream.write("\n")
        self.count += 1

    def close(self) -> None:
        self.stream.flush()
