#!/usr/bin/env python3
"""
Parallel MVP Counter

Tallies the last comma-separated field of every line in a text file using
multiple worker threads. Each worker opens the input on its own, reads only
its assigned line range and feeds one shared frequency map. After all workers
have joined, the counts are written as a report sorted by descending count.
"""

import os
import sys
import time
import argparse
import threading
from dataclasses import dataclass

from tqdm import tqdm

from frequency_map import FrequencyMap
from mvp_errors import (
    ArgumentError,
    InputUnavailable,
    MalformedRecord,
    MvpCounterError,
    OutOfMemory,
)
from mvp_report import REPORT_PATH, write_report

READ_CHUNK_SIZE = 1024


def log(message):
    """Write a diagnostic line to stderr without breaking active progress bars."""
    tqdm.write(message, file=sys.stderr)


def _progress_disabled(progress):
    # None lets tqdm decide from whether stderr is a terminal
    return None if progress is None else not progress


def count_lines(filename, progress=None):
    """Count the records in a file, including a final line without a newline."""
    line_count = 0
    last_byte = b"\n"

    try:
        file_size = os.path.getsize(filename)
        with open(filename, "rb") as f:
            with tqdm(total=file_size, unit="B", unit_scale=True, desc="Counting lines",
                      disable=_progress_disabled(progress), file=sys.stderr) as pbar:
                while True:
                    chunk = f.read(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    line_count += chunk.count(b"\n")
                    last_byte = chunk[-1:]
                    pbar.update(len(chunk))
    except OSError as e:
        raise InputUnavailable(f"Cannot read {filename}: {e}") from e

    if last_byte != b"\n":
        line_count += 1

    return line_count


def get_line_offsets(total_lines, num_chunks):
    """
    Split [0, total_lines) into num_chunks contiguous half-open ranges.

    Every range holds ceil(total_lines / num_chunks) lines except the tail,
    so when there are more chunks than lines the trailing ranges are empty.
    """
    if num_chunks < 1:
        raise ArgumentError(f"Number of workers must be positive, got {num_chunks}")
    if total_lines < 0:
        raise ValueError(f"total_lines must be non-negative, got {total_lines}")

    chunk_size = -(-total_lines // num_chunks)

    ranges = []
    for i in range(num_chunks):
        start_line = min(i * chunk_size, total_lines)
        end_line = min(start_line + chunk_size, total_lines)
        ranges.append((start_line, end_line))

    return ranges


def extract_key(record, line_number=0, strict=False):
    """
    Return the bytes after the last comma of a record, line terminators removed.

    A record without a comma keys on the whole trimmed line, or raises
    MalformedRecord when strict is set.
    """
    line = record.rstrip(b"\r\n")
    comma = line.rfind(b",")
    if comma == -1:
        if strict:
            raise MalformedRecord(line_number, line)
        return line
    return line[comma + 1:]


class RangeKeyReader:
    """Iterate over the keys of the records in [start_line, end_line) of a file"""
    def __init__(self, filename, start_line, end_line, strict=False):
        self.filename = filename
        self.start_line = start_line
        self.end_line = end_line
        self.strict = strict
        self.total_lines = max(end_line - start_line, 0)
        self.file = None

    def __iter__(self):
        self.close()
        self.current_line = 0
        try:
            self.file = open(self.filename, "rb")

            # Skip to start line
            for _ in range(self.start_line):
                if not self.file.readline():
                    break
        except OSError as e:
            self.close()
            raise InputUnavailable(f"Cannot read {self.filename}: {e}") from e

        return self

    def __next__(self):
        if self.file is None or self.current_line >= self.total_lines:
            self.close()
            raise StopIteration

        try:
            line = self.file.readline()
        except OSError as e:
            self.close()
            raise InputUnavailable(f"Cannot read {self.filename}: {e}") from e

        if not line:
            self.close()
            raise StopIteration

        self.current_line += 1
        try:
            return extract_key(line, self.start_line + self.current_line, self.strict)
        except MalformedRecord:
            self.close()
            raise

    def close(self):
        if self.file is not None:
            self.file.close()
            self.file = None


def read_range_keys(filename, start_line, end_line, strict=False):
    """Read the keys of a line range into a list, shorter if the file ends early."""
    try:
        return list(RangeKeyReader(filename, start_line, end_line, strict))
    except MemoryError as e:
        raise OutOfMemory(f"Cannot hold keys for lines {start_line:,}-{end_line:,}") from e


@dataclass
class PartitionDescriptor:
    """The slice of work handed to one worker."""

    worker_id: int
    filename: str
    start_line: int
    end_line: int
    frequency_map: FrequencyMap

    @property
    def line_count(self):
        return self.end_line - self.start_line


class CountWorker(threading.Thread):
    """Reads one line range and adds its keys to the shared frequency map."""

    def __init__(self, descriptor, strict=False):
        super().__init__(name=f"count-worker-{descriptor.worker_id}")
        self.descriptor = descriptor
        self.strict = strict
        self.state = "created"
        self.keys_counted = 0
        self.error = None

    def run(self):
        self.state = "running"
        descriptor = self.descriptor
        try:
            if descriptor.line_count > 0:
                # Read the whole range first: a failed read leaves the map untouched
                keys = read_range_keys(descriptor.filename, descriptor.start_line,
                                       descriptor.end_line, self.strict)
                for key in keys:
                    descriptor.frequency_map.increment_or_insert(key)
                    self.keys_counted += 1
        except MvpCounterError as e:
            self.error = e
            log(f"Worker {descriptor.worker_id}: {e}")
        finally:
            self.state = "done"


@dataclass
class RunStats:
    """Summary of one counting run."""

    total_lines: int
    keys_counted: int
    distinct_keys: int
    failed_workers: int
    elapsed: float
    output_file: str


def run(input_file, workers, output_file=REPORT_PATH, strict=False, progress=None):
    """Count the keys of input_file with `workers` threads and write the report."""
    if workers < 1:
        raise ArgumentError(f"Number of workers must be positive, got {workers}")

    start_time = time.time()

    total_lines = count_lines(input_file, progress)
    log(f"Processing {total_lines:,} lines in {input_file} with {workers} workers")

    # One bucket per line keeps the load factor at or below 1
    frequency_map = FrequencyMap(max(total_lines, 1))
    try:
        ranges = get_line_offsets(total_lines, workers)
        threads = [
            CountWorker(PartitionDescriptor(worker_id, input_file, start_line, end_line, frequency_map),
                        strict)
            for worker_id, (start_line, end_line) in enumerate(ranges)
        ]

        for thread in threads:
            thread.start()

        for thread in tqdm(threads, desc="Joining workers", unit="worker",
                           disable=_progress_disabled(progress), file=sys.stderr):
            thread.join()

        frequency_map.freeze()

        failed = [thread for thread in threads if thread.error is not None]
        assigned = [thread for thread in threads if thread.descriptor.line_count > 0]

        for thread in failed:
            if isinstance(thread.error, MalformedRecord):
                raise thread.error
        if failed and len(failed) == len(assigned):
            raise InputUnavailable(
                f"All {len(failed)} workers failed to read {input_file}"
            ) from failed[0].error

        keys_counted = frequency_map.total()
        worker_keys = sum(thread.keys_counted for thread in threads)
        if keys_counted != worker_keys:
            log(f"Warning: map holds {keys_counted:,} occurrences but workers counted {worker_keys:,}")
        longest_chain = max(frequency_map.chain_lengths())

        distinct_keys = write_report(frequency_map, output_file)
    finally:
        frequency_map.destroy()

    stats = RunStats(
        total_lines=total_lines,
        keys_counted=keys_counted,
        distinct_keys=distinct_keys,
        failed_workers=len(failed),
        elapsed=time.time() - start_time,
        output_file=str(output_file),
    )

    log(f"Counted {stats.keys_counted:,} keys ({stats.distinct_keys:,} distinct, "
        f"longest chain {longest_chain}) in {stats.elapsed:.2f} seconds")
    log(f"Results written to {stats.output_file}")
    return stats


class CounterArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ArgumentError instead of exiting with code 2."""

    def error(self, message):
        raise ArgumentError(message)


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid worker count: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"worker count must be positive, got {number}")
    return number


def create_parser():
    parser = CounterArgumentParser(
        prog="mvp-counter",
        description="Count the last comma-separated field of each line using worker threads",
    )
    parser.add_argument("input_file", help="Path to the input text file")
    parser.add_argument("workers", type=positive_int, help="Number of worker threads")
    parser.add_argument("--output", default=REPORT_PATH,
                        help=f"Path of the report file (default: {REPORT_PATH!r})")
    parser.add_argument("--strict-records", action="store_true",
                        help="Fail on lines without a comma instead of keying on the whole line")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable progress bars")
    return parser


def main(argv=None):
    parser = create_parser()

    try:
        args = parser.parse_args(argv)
    except ArgumentError as e:
        log(parser.format_usage().rstrip())
        log(f"Error: {e}")
        return 1

    try:
        run(
            args.input_file,
            args.workers,
            output_file=args.output,
            strict=args.strict_records,
            progress=False if args.no_progress else None,
        )
    except MvpCounterError as e:
        log(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
