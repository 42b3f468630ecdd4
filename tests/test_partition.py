"""Tests for line counting and range partitioning."""

import pytest

from mvp_errors import ArgumentError, InputUnavailable
from parallel_mvp_counter import count_lines, get_line_offsets


class TestCountLines:
    """Test cases for count_lines."""

    def test_counts_terminated_lines(self, tmp_path) -> None:
        path = tmp_path / "input.txt"
        path.write_bytes(b"g1,Alice\ng2,Bob\ng3,Alice\n")
        assert count_lines(path) == 3

    def test_counts_final_unterminated_line(self, tmp_path) -> None:
        path = tmp_path / "input.txt"
        path.write_bytes(b"g1,Alice\ng2,Bob")
        assert count_lines(path) == 2

    def test_crlf_lines(self, tmp_path) -> None:
        path = tmp_path / "input.txt"
        path.write_bytes(b"a,b\r\nc,d\r\n")
        assert count_lines(path) == 2

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "input.txt"
        path.write_bytes(b"")
        assert count_lines(path) == 0

    def test_lines_spanning_chunks(self, tmp_path) -> None:
        """Lines longer than the read chunk are still counted once."""
        path = tmp_path / "input.txt"
        path.write_bytes((b"x" * 3000 + b",Zed\n") * 4)
        assert count_lines(path) == 4

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(InputUnavailable):
            count_lines(tmp_path / "nope.txt")


class TestGetLineOffsets:
    """Test cases for get_line_offsets."""

    def test_even_split(self) -> None:
        assert get_line_offsets(9, 3) == [(0, 3), (3, 6), (6, 9)]

    def test_uneven_split_uses_ceiling(self) -> None:
        assert get_line_offsets(10, 4) == [(0, 3), (3, 6), (6, 9), (9, 10)]

    def test_more_workers_than_lines(self) -> None:
        assert get_line_offsets(3, 5) == [(0, 1), (1, 2), (2, 3), (3, 3), (3, 3)]

    def test_no_lines(self) -> None:
        assert get_line_offsets(0, 4) == [(0, 0)] * 4

    def test_single_worker(self) -> None:
        assert get_line_offsets(7, 1) == [(0, 7)]

    @pytest.mark.parametrize("total_lines", [0, 1, 2, 7, 10, 64, 101])
    @pytest.mark.parametrize("workers", [1, 2, 3, 5, 8, 16])
    def test_ranges_cover_all_lines_once(self, total_lines, workers) -> None:
        ranges = get_line_offsets(total_lines, workers)

        assert len(ranges) == workers
        covered = [line for start, end in ranges for line in range(start, end)]
        assert covered == list(range(total_lines))
        for (_, previous_end), (start, _) in zip(ranges, ranges[1:]):
            assert start == previous_end

    def test_rejects_zero_workers(self) -> None:
        with pytest.raises(ArgumentError):
            get_line_offsets(10, 0)
