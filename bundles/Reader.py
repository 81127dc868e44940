#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# bundlestream - Streaming reader for asset bundles
# Copyright (C) 2025-2026 bundlestream contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Streaming reader for asset bundles.

    with BundleReader('level0.unity3d') as reader:
        for entry in reader:
            data = entry.read()

All entries share one data source. Iteration follows offset order, so sequential
reading never reopens it; asking for an entry behind the cursor reopens the data
section and skips forward, which for compressed bundles means decompressing again
from the start.
"""

import os

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Optional, Tuple

from bundles.Errors import BundleError, ReaderClosedError
from bundles.FileSystems import FileSystem, LocalFileSystem
from bundles.Header import BundleHeader
from bundles.Index import EntryInfo, readEntries
from bundles.Kernel import getLogger, BundleEvent, EventTiming
from bundles.Settings import SettingsGetter
from bundles.Streams import BoundedStream, DataSourceFactory, DataStream
from bundles.Utils import formatSize

logger = getLogger(__name__)


class ReaderState(Enum):
    UNINITIALIZED = auto()
    HEADER_VALIDATED = auto()
    INDEX_LOADED = auto()
    ITERATING = auto()
    CLOSED = auto()


@dataclass(frozen=True)
class Entry:
    """
    One entry handed out by BundleReader.

    stream yields exactly size bytes. It stays readable until the next entry is
    requested from the same reader or the reader is closed.
    """
    name: str
    size: int
    stream: BoundedStream = field(repr=False, compare=False)

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)

    def iterChunks(self, chunkSize: int) -> Iterator[bytes]:
        while True:
            chunk = self.stream.read(chunkSize)
            if not chunk:
                break
            yield chunk


class BundleReader:
    """
    Reads the header and the entry index on construction and streams entries on demand.

    Not thread-safe, and only one iteration may be consumed at a time: iterators and
    entries of one reader all move the same cursor.
    """

    def __init__(self, path, fileSystem: FileSystem = None, dataSourceFactory: DataSourceFactory = None):
        self.path = os.fspath(path)
        self.fileSystem = fileSystem or LocalFileSystem()
        self.dataSourceFactory = dataSourceFactory or DataSourceFactory()
        self.settings = SettingsGetter.getInstance()

        self._state = ReaderState.UNINITIALIZED
        self._file = None
        self._data: Optional[DataStream] = None
        self._header: Optional[BundleHeader] = None
        self._entries: Tuple[EntryInfo, ...] = ()
        self._entriesByName = {}
        self._currentStream: Optional[BoundedStream] = None

        try:
            self._file = self.fileSystem.open(self.path)

            self._file.seek(0)
            self._header = BundleHeader.read(DataStream(self._file, seekable=False))
            self._state = ReaderState.HEADER_VALIDATED

            self._data = self.dataSourceFactory.open(self._file, self._header)
            self._entries = tuple(readEntries(self._data, self.settings.nameEncodings))
            self._state = ReaderState.INDEX_LOADED
        except BaseException as e:
            self._release()
            self._state = ReaderState.CLOSED

            if isinstance(e, BundleError) and e.path is None:
                e.path = self.path
            raise

        for info in self._entries:
            self._entriesByName.setdefault(info.name, info)

        logger.debug(
            f"Opened {self.path}: {self._header.signature} v{self._header.streamVersion}, "
            f"{len(self._entries)} entries, data section at {self._header.headerSize}"
        )

    @classmethod
    def open(cls, path, fileSystem: FileSystem = None, dataSourceFactory: DataSourceFactory = None) -> 'BundleReader':
        return cls(path, fileSystem=fileSystem, dataSourceFactory=dataSourceFactory)

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state == ReaderState.CLOSED

    @property
    def header(self) -> BundleHeader:
        self._ensureOpen()
        return self._header

    @property
    def entries(self) -> Tuple[EntryInfo, ...]:
        """Entry index in offset order"""
        self._ensureOpen()
        return self._entries

    def getHeader(self) -> BundleHeader:
        return self.header

    def getEntries(self) -> Tuple[EntryInfo, ...]:
        return self.entries

    def iterate(self) -> 'EntryIterator':
        """New single-pass iterator over all entries in offset order."""
        self._ensureOpen()
        return EntryIterator(self)

    def __iter__(self) -> 'EntryIterator':
        return self.iterate()

    def getEntry(self, name: str) -> Entry:
        """
        Open the entry called name, wherever the cursor is.

        Raises:
            KeyError: No entry with that name
        """
        self._ensureOpen()

        info = self._entriesByName.get(name)
        if info is None:
            raise KeyError(name)

        return self._openEntry(info)

    def _closedError(self) -> ReaderClosedError:
        return ReaderClosedError(f"Bundle reader for {self.path} is closed", path=self.path)

    def _ensureOpen(self):
        if self._state == ReaderState.CLOSED:
            raise self._closedError()

    def _openEntry(self, info: EntryInfo) -> Entry:
        self._ensureOpen()

        BundleEvent.entryOpen.trigger(sender=self, context={'info': info}, timing=EventTiming.BEFORE)

        # The previous entry reads from the same cursor
        if self._currentStream is not None:
            self._currentStream.invalidate()
            self._currentStream = None

        if self._data is None or self._data.position > info.offset:
            self._reopenData(info)

        self._data.skipTo(info.offset)

        stream = BoundedStream(self._data, info.size)
        self._currentStream = stream
        self._state = ReaderState.ITERATING

        logger.debug(f"Entry '{info.name}' at offset {info.offset} ({formatSize(info.size)})")

        entry = Entry(name=info.name, size=info.size, stream=stream)
        BundleEvent.entryOpen.trigger(sender=self, context={'entry': entry, 'info': info}, timing=EventTiming.AFTER)
        return entry

    def _reopenData(self, info: EntryInfo):
        if self._data is not None:
            logger.debug(
                f"Cursor at {self._data.position} is past '{info.name}' at {info.offset}, reopening data section"
            )
            data, self._data = self._data, None
            data.close()

        self._data = self.dataSourceFactory.open(self._file, self._header)

    def _release(self):
        if self._currentStream is not None:
            self._currentStream.invalidate()
            self._currentStream = None

        data, self._data = self._data, None
        fileHandle, self._file = self._file, None

        try:
            if data is not None:
                data.close()
        finally:
            if fileHandle is not None:
                fileHandle.close()

    def close(self):
        """Release the data source and the file. Safe to call more than once."""
        if self._state == ReaderState.CLOSED:
            return

        self._state = ReaderState.CLOSED

        # The entry handed out last fails like the reader from now on
        if self._currentStream is not None:
            self._currentStream.invalidate(self._closedError())
            self._currentStream = None

        self._release()
        logger.debug(f"Closed {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, excType, excValue, traceback):
        self.close()

    def __repr__(self):
        return f"<BundleReader {self.path!r} state={self._state.name} entries={len(self._entries)}>"


class EntryIterator:
    """Single pass over the entries of a reader in offset order"""

    def __init__(self, reader: BundleReader):
        self._reader = reader
        self._infos = iter(reader.entries)

    def __iter__(self):
        return self

    def __next__(self) -> Entry:
        self._reader._ensureOpen()
        info = next(self._infos)
        return self._reader._openEntry(info)
