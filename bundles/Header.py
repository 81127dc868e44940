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
from typing import Optional, Tuple

from bundles.Errors import FormatError, InvalidSignatureError
from bundles.Settings import SettingsGetter
from bundles.Streams import DataStream
from bundles.Utils import toText

SIGNATURE_WEB = 'UnityWeb' # LZMA compressed data section
SIGNATURE_RAW = 'UnityRaw' # Uncompressed data section

SIGNATURES = (SIGNATURE_WEB, SIGNATURE_RAW)
COMPRESSED_SIGNATURES = (SIGNATURE_WEB,)


@dataclass(frozen=True)
class BundleHeader:
    """
    Fixed header at the start of every bundle.

    headerSize is the file offset where the data section (entry index followed by the
    entry payloads) begins. Fields after dataHeaderSize, if any, are skipped.
    """
    signature: str
    streamVersion: int
    unityVersion: str
    unityRevision: str
    minimumStreamedBytes: int
    headerSize: int
    numberOfLevelsToDownload: int
    levelByteEnd: Tuple[Tuple[int, int], ...] = ()
    completeFileSize: Optional[int] = None # streamVersion >= 2
    dataHeaderSize: Optional[int] = None # streamVersion >= 3

    @property
    def compressed(self) -> bool:
        return self.signature in COMPRESSED_SIGNATURES

    @property
    def numberOfLevels(self) -> int:
        return len(self.levelByteEnd)

    def isCompressed(self) -> bool:
        return self.compressed

    def hasValidSignature(self) -> bool:
        return self.signature in SIGNATURES

    @classmethod
    def parse(cls, data: bytes) -> 'BundleHeader':
        """Parse a header from the leading bytes of a bundle."""
        return cls.read(DataStream.fromBytes(data))

    @classmethod
    def read(cls, dataStream: DataStream) -> 'BundleHeader':
        """
        Read a header from a stream positioned at the start of a bundle.

        The signature is checked before anything else is read.

        Raises:
            InvalidSignatureError: Unknown or missing signature
            TruncatedDataError: The data ends inside the header
            FormatError: Negative header size or level count
        """
        settings = SettingsGetter.getInstance()

        try:
            rawSignature = dataStream.readStringNull(settings.signatureMaxLength)
        except FormatError as e:
            raise InvalidSignatureError(f"No bundle signature found: {e}") from e

        signature = rawSignature.decode('latin-1')
        if signature not in SIGNATURES:
            raise InvalidSignatureError(f"Invalid signature {rawSignature[:32]!r}", signature=signature)

        streamVersion = dataStream.readInt()
        unityVersion = toText(dataStream.readStringNull(), settings.nameEncodings)
        unityRevision = toText(dataStream.readStringNull(), settings.nameEncodings)
        minimumStreamedBytes = dataStream.readInt()

        headerSize = dataStream.readInt()
        if headerSize < 0:
            raise FormatError(f"Negative header size {headerSize}")

        numberOfLevelsToDownload = dataStream.readInt()

        numberOfLevels = dataStream.readInt()
        if numberOfLevels < 0:
            raise FormatError(f"Negative level count {numberOfLevels}")

        levelByteEnd = []
        for _ in range(numberOfLevels):
            compressedEnd = dataStream.readUInt()
            uncompressedEnd = dataStream.readUInt()
            levelByteEnd.append((compressedEnd, uncompressedEnd))

        completeFileSize = dataStream.readUInt() if streamVersion >= 2 else None
        dataHeaderSize = dataStream.readUInt() if streamVersion >= 3 else None

        return cls(
            signature=signature,
            streamVersion=streamVersion,
            unityVersion=unityVersion,
            unityRevision=unityRevision,
            minimumStreamedBytes=minimumStreamedBytes,
            headerSize=headerSize,
            numberOfLevelsToDownload=numberOfLevelsToDownload,
            levelByteEnd=tuple(levelByteEnd),
            completeFileSize=completeFileSize,
            dataHeaderSize=dataHeaderSize,
        )
