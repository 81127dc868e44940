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

from bundles.Kernel import PUBLIC_VERSION, Singleton, getLogger
from bundles.Utils import getEnv

# Bytes read and discarded per step when fast-forwarding a forward-only (compressed) data source
SKIP_CHUNK_SIZE = getEnv('BUNDLE_SKIP_CHUNK_SIZE', 64 * 1024)

# Buffer size of the buffered reader placed over every data source
READ_BUFFER_SIZE = getEnv('BUNDLE_READ_BUFFER_SIZE', 256 * 1024)

# Compressed bytes fed to the LZMA decompressor per step
LZMA_INPUT_CHUNK_SIZE = getEnv('BUNDLE_LZMA_INPUT_CHUNK_SIZE', 64 * 1024)

# Upper bound for NUL-terminated strings in headers and the entry index
MAX_STRING_LENGTH = 4096

# Upper bound for the signature string, anything longer is not a bundle
SIGNATURE_MAX_LENGTH = 255

# Encodings tried, in order, before UTF-8 and detection when decoding names
NAME_ENCODINGS = ()

logger = getLogger(__name__)


# Singleton
class SettingsGetter(Singleton):
    """
    Read-only view of the reader configuration. The first instantiation decides the values;
    every later SettingsGetter() / getInstance() returns the same object.
    """

    def initialize(
        self,
        skipChunkSize=None,
        readBufferSize=None,
        lzmaInputChunkSize=None,
        maxStringLength=MAX_STRING_LENGTH,
        nameEncodings=NAME_ENCODINGS,
    ):
        self._skipChunkSize = skipChunkSize or SKIP_CHUNK_SIZE
        self._readBufferSize = readBufferSize or READ_BUFFER_SIZE
        self._lzmaInputChunkSize = lzmaInputChunkSize or LZMA_INPUT_CHUNK_SIZE
        self._maxStringLength = maxStringLength
        self._nameEncodings = tuple(nameEncodings or ())

        for name, value in (
            ('skipChunkSize', self._skipChunkSize),
            ('readBufferSize', self._readBufferSize),
            ('lzmaInputChunkSize', self._lzmaInputChunkSize),
            ('maxStringLength', self._maxStringLength),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        logger.debug(
            f"Settings for bundlestream {PUBLIC_VERSION}: skipChunkSize={self._skipChunkSize} "
            f"readBufferSize={self._readBufferSize} lzmaInputChunkSize={self._lzmaInputChunkSize}"
        )

    @property
    def version(self):
        return PUBLIC_VERSION

    @property
    def skipChunkSize(self) -> int:
        return self._skipChunkSize

    @property
    def readBufferSize(self) -> int:
        return self._readBufferSize

    @property
    def lzmaInputChunkSize(self) -> int:
        return self._lzmaInputChunkSize

    @property
    def maxStringLength(self) -> int:
        return self._maxStringLength

    @property
    def signatureMaxLength(self) -> int:
        return SIGNATURE_MAX_LENGTH

    @property
    def nameEncodings(self) -> tuple:
        return self._nameEncodings
