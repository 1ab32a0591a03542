from typing import List, Optional

from .constants import SLOT_SIZE, SLOTS_PER_BLOB
from .errors import InvalidInput


class BlobCodec:
    """
    Packs chunk bytes into fixed-size blobs of field slots.

    Every slot keeps byte 0 zero so its big-endian value stays below the
    field modulus; the remaining slot_size - 1 bytes carry payload.
    """

    def __init__(self, slot_size: int = SLOT_SIZE, slots_per_blob: int = SLOTS_PER_BLOB):
        self.slot_size = slot_size
        self.slots_per_blob = slots_per_blob
        self.run_size = slot_size - 1
        self.blob_size = slot_size * slots_per_blob
        self.capacity = self.run_size * slots_per_blob

    def encode(self, chunk: bytes) -> bytes:
        if len(chunk) > self.capacity:
            raise InvalidInput(f"chunk of {len(chunk)} bytes exceeds blob capacity {self.capacity}")
        blob = bytearray(self.blob_size)
        for slot, offset in enumerate(range(0, len(chunk), self.run_size)):
            run = chunk[offset:offset + self.run_size]
            start = slot * self.slot_size + 1
            blob[start:start + len(run)] = run
        return bytes(blob)

    def decode(self, blob: bytes, length: Optional[int] = None) -> bytes:
        """
        Extract the payload of a blob.

        Without `length` the payload is cut after its last non-zero byte, so
        a chunk whose real data ends in zero bytes loses them. Pass the
        declared chunk length whenever it is known.
        """
        if len(blob) != self.blob_size:
            raise InvalidInput(f"blob must be {self.blob_size} bytes, got {len(blob)}")
        data = b''.join(
            blob[offset + 1:offset + self.slot_size]
            for offset in range(0, self.blob_size, self.slot_size)
        )
        if length is not None:
            return data[:length]
        return data.rstrip(b'\x00')

    def decode_raw(self, data: bytes) -> bytes:
        """Chunks stored without slot padding come back as-is."""
        return bytes(data)

    def split_into_blobs(self, content: bytes) -> List[bytes]:
        if not content:
            raise InvalidInput("Blobs: invalid blob data")
        return [
            self.encode(content[i:i + self.capacity])
            for i in range(0, len(content), self.capacity)
        ]
