"""
Shared Frequency Map

Chaining hash table that maps a key (bytes) to its occurrence count.
Worker threads feed it through increment_or_insert, which holds the map's
lock for the whole lookup-then-insert step. Once the workers have joined the
coordinator freezes it and walks it single-threaded to build the report.
"""

import threading

from mvp_errors import OutOfMemory

HASH_MULTIPLIER = 31


def polynomial_hash(key, capacity):
    """Rolling hash over the raw key bytes, reduced modulo capacity at each step."""
    value = 0
    for byte in key:
        value = (value * HASH_MULTIPLIER + byte) % capacity
    return value


class Entry:
    """One key and its count, linked to the next entry of the same bucket."""

    __slots__ = ("key", "count", "next")

    def __init__(self, key, count=1, next_entry=None):
        self.key = key
        self.count = count
        self.next = next_entry

    def __repr__(self):
        return f"Entry({self.key!r}, {self.count})"


class FrequencyMap:
    """
    Fixed-capacity hash table of key counts guarded by one coarse lock.

    The bucket array never grows: the coordinator sizes it with the number of
    input records, which bounds the number of distinct keys.
    """

    def __init__(self, capacity):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        try:
            self._buckets = [None] * capacity
        except MemoryError as e:
            raise OutOfMemory(f"Cannot allocate {capacity:,} buckets") from e
        self.capacity = capacity
        self.distinct_count = 0
        self._lock = threading.Lock()
        self._frozen = False

    def increment_or_insert(self, key):
        """Add one occurrence of key. Safe to call from any number of threads."""
        with self._lock:
            if self._frozen:
                raise RuntimeError("FrequencyMap is frozen; no further updates allowed")

            index = polynomial_hash(key, self.capacity)
            current = self._buckets[index]
            while current is not None:
                if current.key == key:
                    current.count += 1
                    return
                current = current.next

            # Build the entry before linking it so a failed allocation leaves
            # the chain and distinct_count untouched.
            try:
                entry = Entry(bytes(key), 1, self._buckets[index])
            except MemoryError as e:
                raise OutOfMemory(f"Cannot allocate entry for key {key!r}") from e

            self._buckets[index] = entry
            self.distinct_count += 1

    def freeze(self):
        """Reject any further updates. Called once every worker has joined."""
        with self._lock:
            self._frozen = True

    def for_each_entry(self, visitor):
        """Call visitor(key, count) once per entry. The caller serializes access."""
        for head in self._buckets:
            current = head
            while current is not None:
                visitor(current.key, current.count)
                current = current.next

    def items(self):
        """Collect every (key, count) pair, in bucket order."""
        pairs = []
        self.for_each_entry(lambda key, count: pairs.append((key, count)))
        return pairs

    def get(self, key, default=0):
        current = self._buckets[polynomial_hash(key, self.capacity)]
        while current is not None:
            if current.key == key:
                return current.count
            current = current.next
        return default

    def total(self):
        """Sum of all counts."""
        counts = []
        self.for_each_entry(lambda _key, count: counts.append(count))
        return sum(counts)

    def chain_lengths(self):
        """Length of every collision chain, indexed by bucket."""
        lengths = []
        for head in self._buckets:
            length = 0
            current = head
            while current is not None:
                length += 1
                current = current.next
            lengths.append(length)
        return lengths

    def destroy(self):
        """Unlink every chain and release the bucket array."""
        for index, head in enumerate(self._buckets):
            current = head
            while current is not None:
                following = current.next
                current.next = None
                current = following
            self._buckets[index] = None
        self._buckets = []
        self.distinct_count = 0
        self._frozen = True

    def __len__(self):
        return self.distinct_count
