"""
Weight tables for the n-tuple network.

Each table is a contiguous float32 tensor indexed by feature key. The binary
file layout is a little-endian u32 table count followed by every table's raw
float32 payload, back to back. Table sizes are not stored; the loader must
already know them from the configured topology.
"""

import struct
from pathlib import Path

import torch

TABLE_COUNT_FORMAT = "<I"
BYTES_PER_WEIGHT = 4


class WeightFileError(RuntimeError):
    """Raised when a weight file cannot be opened, read, written, or does not match the topology."""


class WeightStore:
    tables: list[torch.Tensor]

    def __init__(self, tables: list[torch.Tensor]):
        self.tables = tables

    @classmethod
    def zeros(cls, table_count: int, table_size: int) -> "WeightStore":
        return cls([torch.zeros(table_size, dtype=torch.float32) for _ in range(table_count)])

    def __len__(self) -> int:
        return len(self.tables)

    @property
    def table_size(self) -> int:
        return self.tables[0].numel() if self.tables else 0

    def lookup(self, group: int, key: int) -> float:
        return self.tables[group][key].item()

    def accumulate(self, group: int, key: int, delta: float) -> None:
        self.tables[group][key] += delta

    def gather(self, group: int, keys: list[int]) -> float:
        """Sum of the weights stored under ``keys`` in one table."""
        index = torch.tensor(keys, dtype=torch.long)
        return self.tables[group].index_select(0, index).sum().item()

    def scatter_add(self, group: int, keys: list[int], delta: float) -> None:
        """Add ``delta`` once per key; a key listed twice receives it twice."""
        index = torch.tensor(keys, dtype=torch.long)
        updates = torch.full((len(keys),), delta, dtype=torch.float32)
        self.tables[group].index_add_(0, index, updates)

    def save(self, path: str | Path) -> None:
        try:
            with open(path, "wb") as out:
                out.write(struct.pack(TABLE_COUNT_FORMAT, len(self.tables)))
                for table in self.tables:
                    out.write(table.contiguous().numpy().data)
        except OSError as e:
            raise WeightFileError(f"cannot save weights to {path}: {e}") from e

    @classmethod
    def load(cls, path: str | Path, table_count: int, table_size: int) -> "WeightStore":
        header_size = struct.calcsize(TABLE_COUNT_FORMAT)
        payload_size = table_size * BYTES_PER_WEIGHT
        try:
            with open(path, "rb") as src:
                header = src.read(header_size)
                if len(header) != header_size:
                    raise WeightFileError(f"{path}: truncated table count")
                (count,) = struct.unpack(TABLE_COUNT_FORMAT, header)
                if count != table_count:
                    raise WeightFileError(
                        f"{path}: holds {count} tables, topology expects {table_count}"
                    )

                tables = []
                for group in range(count):
                    table = torch.empty(table_size, dtype=torch.float32)
                    if src.readinto(table.numpy()) != payload_size:
                        raise WeightFileError(
                            f"{path}: table {group} is shorter than {table_size} weights"
                        )
                    tables.append(table)

                if src.read(1):
                    raise WeightFileError(f"{path}: unexpected data after {count} tables")
        except OSError as e:
            raise WeightFileError(f"cannot load weights from {path}: {e}") from e

        return cls(tables)
