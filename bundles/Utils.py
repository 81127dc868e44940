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

import locale
import os

import bitmath
import chardet

from bundles.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)

# latin-1 maps every byte, so decoding through this chain never fails
_TEXT_FALLBACK_ENCODINGS = tuple(e for e in (locale.getlocale()[1], 'latin-1') if e)


def toText(s, encodings=None, throw=True, confidence=0.8):
    """
    Force bytes read from a bundle into a str.

    @param s Bytes (str is returned as is).
    @param encodings Encodings tried first, in order. UTF-8 is always tried next,
                     then the chardet guess, then the locale encoding and latin-1.
    @param throw Raise exception if it fails to convert string.
    @param confidence Minimum chardet confidence to try the detected encoding.
    @return str, or None when conversion fails and throw is False.
    """
    if isinstance(s, str):
        return s

    if not isinstance(s, (bytes, bytearray)):
        return str(s)

    s = bytes(s)
    error = None

    for encoding in tuple(encodings or ()) + ('utf-8',):
        try:
            return s.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            error = e

    candidates = []
    try:
        result = chardet.detect(s)
        if result['encoding'] and result['confidence'] > confidence:
            candidates.append(result['encoding'])
    except Exception as e:
        logger.debug(f"Encoding detection failed: {e}")

    candidates.extend(_TEXT_FALLBACK_ENCODINGS)

    for encoding in candidates:
        try:
            return s.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            error = e

    if throw and error:
        raise error

    return None


def formatSize(size, decimal=None, plural=None):
    """Human readable size: '512 Bytes' below 1 KiB, then '3K', '2M', '1.5G', '2.50T'"""
    if decimal is None:
        if size < ONE_GB: # Less than 1GB
            decimal = 0
        elif size < ONE_TB: # Between 1GB and 1TB
            decimal = 1
        else: # Greater than 1TB
            decimal = 2

    if size < ONE_KB:
        # bitmath names bytes "B" and may pick Bit for 0, so small sizes are spelled out here
        if plural is None:
            plural = size != 1
        return f"{size:.0f} {'Bytes' if plural else 'Byte'}"

    # Larger sizes drop the unit suffix: 3kB -> 3K, 1.5GB -> 1.5G
    sizeStr = bitmath.Byte(size).best_prefix(system=bitmath.SI).format("{value:.%df}{unit}" % decimal)
    return sizeStr.replace('B', '').upper()


def getEnv(envVar, default):
    """Safely get value from environment variable with automatic type detection based on default"""
    try:
        value = os.getenv(envVar)
        if value is not None:
            if default is None:
                return value

            if isinstance(default, bool):
                return value == "True"
            elif isinstance(default, int):
                return int(value)
            elif isinstance(default, float):
                return float(value)
            elif isinstance(default, str):
                return str(value)
            else:
                return type(default)(value)
        return default
    except (ValueError, TypeError):
        return default
