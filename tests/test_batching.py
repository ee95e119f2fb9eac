"""Tests for lot partitioning."""

import math

import pytest

from conta_import.batching import DEFAULT_LOT_SIZE, partition
from conta_import.exceptions import ConfigurationError


class TestPartition:
    """Tests for partition()."""

    def test_default_lot_size(self) -> None:
        assert DEFAULT_LOT_SIZE == 500

    @pytest.mark.parametrize("n,size", [(1, 500), (500, 500), (501, 500), (1234, 500), (10, 3), (9, 3)])
    def test_lot_count_and_sizes(self, n: int, size: int) -> None:
        """ceil(N/C) lots, all full except possibly the last."""
        lots = list(partition(list(range(n)), size))

        assert len(lots) == math.ceil(n / size)
        assert all(len(lot) == size for lot in lots[:-1])
        assert 1 <= len(lots[-1]) <= size

    def test_concatenation_restores_order(self) -> None:
        records = [f"conta-{i}" for i in range(1234)]

        lots = list(partition(records, 500))

        assert [r for lot in lots for r in lot] == records

    def test_no_deduplication(self) -> None:
        lots = list(partition(["A1", "A1", "A1"], 2))

        assert lots == [["A1", "A1"], ["A1"]]

    def test_empty_input_yields_nothing(self) -> None:
        assert list(partition([], 500)) == []

    def test_none_input_yields_nothing(self) -> None:
        assert list(partition(None, 500)) == []

    def test_is_lazy(self) -> None:
        gen = partition(list(range(1000)), 500)

        assert next(gen) == list(range(500))

    def test_invalid_size(self) -> None:
        with pytest.raises(ConfigurationError, match="Lot size"):
            list(partition([1, 2, 3], 0))
