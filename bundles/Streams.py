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
Byte sources for the data section of a bundle.

A bundle's data section is either a plain byte range of the file or one LZMA stream
that decompresses to it. DataSourceFactory hides the difference behind DataStream,
which keeps the logical position inside the (decompressed) data section. Decompressing
sources are forward-only: moving the position back means opening a new source and
skipping forward again.
"""

import io
import lzma
import struct

from bundles.Errors import FormatError, TruncatedDataError
from bundles.Kernel import getLogger, BundleEvent, EventTiming
from bundles.Settings import SettingsGetter
from bundles.Utils import formatSize

logger = getLogger(__name__)

INT32 = struct.Struct('>i')
UINT32 = struct.Struct('>I')


class SectionSource(io.RawIOBase):
    """
    Seekable view over a raw file starting at a base offset.

    Positions are relative to base. Every read seeks the handle first, so the handle
    may be moved by others between reads.
    """

    def __init__(self, fileHandle, base: int):
        super().__init__()
        self._fp = fileHandle
        self._base = int(base)
        self._pos = 0
        self._size = max(0, fileHandle.seek(0, io.SEEK_END) - self._base)

    @property
    def size(self) -> int:
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            newPos = offset
        elif whence == io.SEEK_CUR:
            newPos = self._pos + offset
        elif whence == io.SEEK_END:
            newPos = self._size + offset
        else:
            raise ValueError("Invalid whence")

        if newPos < 0:
            raise ValueError(f"Negative seek position {newPos}")

        self._pos = int(newPos)
        return self._pos

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed section.")

        want = min(len(b), self._size - self._pos)
        if want <= 0:
            return 0

        self._fp.seek(self._base + self._pos)
        data = self._fp.read(want)

        n = len(data)
        b[:n] = data
        self._pos += n
        return n


class LzmaSource(io.RawIOBase):
    """
    Forward-only decompressor for an LZMA "alone" stream read from the current
    position of a raw handle. Output ends with the LZMA stream; trailing file bytes
    are never consumed.
    """

    def __init__(self, fileHandle, inputChunkSize: int):
        super().__init__()
        self._fp = fileHandle
        self._inputChunkSize = inputChunkSize
        self._decompressor = lzma.LZMADecompressor(format=lzma.FORMAT_ALONE)
        self._pending = b''
        self._pendingOffset = 0
        self._pos = 0

    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._pos

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed decompressor.")

        want = len(b)
        if want <= 0:
            return 0

        while self._pendingOffset >= len(self._pending):
            if self._decompressor.eof:
                return 0

            if self._decompressor.needs_input:
                chunk = self._fp.read(self._inputChunkSize)
                if not chunk:
                    raise TruncatedDataError(
                        f"Compressed data ended after {formatSize(self._pos)} of output, "
                        f"before the end of the LZMA stream",
                        actual=self._pos,
                    )
            else:
                chunk = b''

            # lzma.LZMAError on corrupt input propagates as is
            self._pending = self._decompressor.decompress(chunk, max_length=max(want, self._inputChunkSize))
            self._pendingOffset = 0

        n = min(want, len(self._pending) - self._pendingOffset)
        b[:n] = self._pending[self._pendingOffset:self._pendingOffset + n]
        self._pendingOffset += n
        self._pos += n
        return n


class DataStream:
    """
    Big-endian binary reader that counts the bytes it has consumed.

    position is the offset inside the data section: bytes read since the source was
    created, or the target of the last jump on a seekable source of known size.
    """

    def __init__(self, source, seekable: bool = None, size: int = None, skipChunkSize: int = None,
                 maxStringLength: int = None):
        settings = SettingsGetter.getInstance()

        self._source = source
        self._seekable = source.seekable() if seekable is None else seekable
        self._size = size
        self._position = 0
        self._skipChunkSize = skipChunkSize or settings.skipChunkSize
        self._maxStringLength = maxStringLength or settings.maxStringLength
        self._closed = False

    @classmethod
    def fromBytes(cls, data: bytes) -> 'DataStream':
        return cls(io.BytesIO(data), size=len(data))

    @property
    def position(self) -> int:
        return self._position

    @property
    def size(self):
        """Size of the source, None when it is only known after decompression"""
        return self._size

    @property
    def seekable(self) -> bool:
        return self._seekable

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensureOpen(self):
        if self._closed:
            raise ValueError("I/O operation on closed data stream.")

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes (all remaining when negative); fewer only at the end of data."""
        self._ensureOpen()

        data = self._source.read(size)
        if data is None: # Non-blocking source with nothing ready
            return b''

        self._position += len(data)
        return data

    def readFully(self, size: int) -> bytes:
        start = self._position
        data = self.read(size)
        if len(data) < size:
            raise TruncatedDataError(
                f"Expected {size} bytes at offset {start}, got {len(data)}", expected=size, actual=len(data)
            )
        return data

    def readInt(self) -> int:
        return INT32.unpack(self.readFully(INT32.size))[0]

    def readUInt(self) -> int:
        return UINT32.unpack(self.readFully(UINT32.size))[0]

    def readStringNull(self, limit: int = None) -> bytes:
        """
        Read a NUL-terminated string, without its terminator.

        Raises:
            TruncatedDataError: The data ends before the terminator
            FormatError: No terminator within limit bytes
        """
        limit = limit or self._maxStringLength
        start = self._position
        buffer = bytearray()

        while True:
            c = self.read(1)
            if not c:
                raise TruncatedDataError(f"Unterminated string at offset {start}", actual=len(buffer))
            if c == b'\0':
                return bytes(buffer)
            if len(buffer) >= limit:
                raise FormatError(f"String at offset {start} is longer than {limit} bytes")
            buffer += c

    def skipTo(self, offset: int):
        """
        Move forward to offset.

        Raises:
            io.UnsupportedOperation: offset is behind the current position
            TruncatedDataError: The data ends before offset
        """
        self._ensureOpen()

        if offset < self._position:
            raise io.UnsupportedOperation(
                f"Cannot move back from offset {self._position} to {offset}, reopen the data source"
            )

        if offset == self._position:
            return

        if self._seekable and self._size is not None:
            if offset > self._size:
                raise TruncatedDataError(
                    f"Offset {offset} is past the end of the data section ({self._size} bytes)",
                    expected=offset,
                    actual=self._size,
                )
            self._source.seek(offset)
            self._position = offset
            return

        start = self._position
        remaining = offset - start
        while remaining > 0:
            chunk = self.read(min(remaining, self._skipChunkSize))
            if not chunk:
                raise TruncatedDataError(
                    f"Data ended at offset {self._position} before reaching {offset}",
                    expected=offset,
                    actual=self._position,
                )
            remaining -= len(chunk)

        logger.debug(f"Skipped {formatSize(offset - start)} to offset {offset}")

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._source.close()

    def __enter__(self):
        return self

    def __exit__(self, excType, excValue, traceback):
        self.close()


class BoundedStream(io.RawIOBase):
    """
    Read-only view of the next size bytes of a DataStream.

    Reports end of data after size bytes even when the source has more. Closing the view
    (or invalidate()) never closes the source.
    """

    def __init__(self, source: DataStream, size: int):
        super().__init__()
        self._source = source
        self._size = size
        self._remaining = size
        self._closedError = None

    @property
    def size(self) -> int:
        return self._size

    @property
    def remaining(self) -> int:
        return self._remaining

    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._size - self._remaining

    def readinto(self, b) -> int:
        if self.closed:
            if self._closedError is not None:
                raise self._closedError.with_traceback(None)
            raise ValueError("I/O operation on closed entry stream.")

        want = min(len(b), self._remaining)
        if want <= 0:
            return 0

        data = self._source.read(want)
        if not data:
            raise TruncatedDataError(
                f"Data ended {self._remaining} bytes before the end of a {self._size} byte entry",
                expected=self._size,
                actual=self._size - self._remaining,
            )

        n = len(data)
        b[:n] = data
        self._remaining -= n
        return n

    def invalidate(self, closedError: Exception = None):
        """
        Detach the view, the source stays open. Further reads raise closedError,
        or ValueError like any closed stream when it is None.
        """
        self._closedError = closedError
        self.close()


class DataSourceFactory:
    """
    Opens the data section of a bundle as a fresh DataStream at position 0.

    Every call returns an independent source; openCount tracks how often the data
    section had to be (re)opened.
    """

    def __init__(self, settings: SettingsGetter = None, decompressorClass=LzmaSource):
        self.settings = settings or SettingsGetter.getInstance()
        self.decompressorClass = decompressorClass
        self.openCount = 0

    def open(self, fileHandle, header) -> DataStream:
        BundleEvent.dataSourceOpen.trigger(
            sender=self, context={'header': header, 'openCount': self.openCount}, timing=EventTiming.BEFORE
        )

        fileHandle.seek(header.headerSize)

        if header.isCompressed():
            raw = self.decompressorClass(fileHandle, self.settings.lzmaInputChunkSize)
            size = None
        else:
            raw = SectionSource(fileHandle, header.headerSize)
            size = raw.size

        dataStream = DataStream(
            io.BufferedReader(raw, buffer_size=self.settings.readBufferSize),
            size=size,
            skipChunkSize=self.settings.skipChunkSize,
            maxStringLength=self.settings.maxStringLength,
        )

        self.openCount += 1
        logger.debug(
            f"Opened data section at {header.headerSize} "
            f"(compressed={header.isCompressed()}, openCount={self.openCount})"
        )

        BundleEvent.dataSourceOpen.trigger(
            sender=self,
            context={'header': header, 'dataStream': dataStream, 'openCount': self.openCount},
            timing=EventTiming.AFTER,
        )

        return dataStream
