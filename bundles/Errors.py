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


class BundleError(Exception):
    """Base exception for everything raised while reading a bundle"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class FormatError(BundleError):
    """The bytes do not follow the bundle format"""
    pass


class InvalidSignatureError(FormatError):
    """Raised when the header magic is not a known bundle signature"""

    def __init__(self, message: str, signature=None, path: str = None):
        super().__init__(message, path=path)
        self.signature = signature


class TruncatedDataError(FormatError):
    """Raised when fewer bytes are available than the header, index or an entry declares"""

    def __init__(self, message: str, expected: int = None, actual: int = None, path: str = None):
        super().__init__(message, path=path)
        self.expected = expected
        self.actual = actual


class ReaderClosedError(BundleError, OSError):
    """Raised for any operation on a reader after close()"""
    pass
