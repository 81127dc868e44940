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

from dataclasses import dataclass
from typing import List

from bundles.Errors import FormatError
from bundles.Streams import DataStream
from bundles.Utils import toText


@dataclass(frozen=True)
class EntryInfo:
    """Index record of one entry; offset is relative to the start of the data section"""
    name: str
    offset: int
    size: int

    @property
    def end(self) -> int:
        return self.offset + self.size


def readEntryInfo(dataStream: DataStream, encodings=None) -> EntryInfo:
    name = toText(dataStream.readStringNull(), encodings)
    offset = dataStream.readUInt()
    size = dataStream.readUInt()
    return EntryInfo(name=name, offset=offset, size=size)


def readEntries(dataStream: DataStream, encodings=None) -> List[EntryInfo]:
    """
    Read the entry index from the start of the data section.

    Returns:
        list: EntryInfo sorted by offset, entries with equal offsets keep their index order

    Raises:
        FormatError: Negative entry count
        TruncatedDataError: The index is cut short
    """
    count = dataStream.readInt()
    if count < 0:
        raise FormatError(f"Negative entry count {count}")

    entries = [readEntryInfo(dataStream, encodings) for _ in range(count)]

    # Offset order is the physical order, the only order a forward-only source can stream
    entries.sort(key=lambda entry: entry.offset)
    return entries
