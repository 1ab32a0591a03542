"""
Content sources accepted by the uploader.

Callers pick the variant explicitly: BytesContent for in-memory buffers,
FileContent for a (range of a) local file. Both expose `size` and
`read_range(start, end)`; reads past the end are clamped.
"""
import os
from typing import Union

from .errors import InvalidInput


class BytesContent:
    def __init__(self, data: bytes):
        self.data = bytes(data)

    @property
    def size(self) -> int:
        return len(self.data)

    def read_range(self, start: int, end: int) -> bytes:
        return self.data[start:min(end, len(self.data))]

    def __repr__(self):
        return f"BytesContent(size={self.size})"


class FileContent:
    def __init__(self, path: str, start: int = 0, end: int = 0):
        if not os.path.isfile(path):
            raise InvalidInput(f"invalid file path: {path}")
        file_size = os.path.getsize(path)
        self.path = path
        self.start = min(start, max(file_size - 1, 0))
        self.end = file_size if end == 0 else min(end, file_size)

    @property
    def size(self) -> int:
        return max(self.end - self.start, 0)

    def read_range(self, start: int, end: int) -> bytes:
        """Read [start, end) relative to this content's own start offset."""
        begin = self.start + start
        stop = min(self.start + end, self.end)
        if stop <= begin:
            return b''
        with open(self.path, 'rb') as f:
            f.seek(begin)
            return f.read(stop - begin)

    def __repr__(self):
        return f"FileContent({self.path!r}, size={self.size})"


ContentSource = Union[BytesContent, FileContent]
