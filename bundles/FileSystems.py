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
FileSystem abstraction for Reader.py

BundleReader never calls open() on a path itself; it goes through a FileSystem so that
callers can serve bundles from somewhere other than the local disk.
"""

import os

from typing import BinaryIO, Protocol

from bundles.Kernel import getLogger

logger = getLogger(__name__)


class FileSystem(Protocol):
    """FileSystem protocol that all implementations must follow"""

    def open(self, path: str) -> BinaryIO:
        ... # Seekable binary handle, owned by the caller


class LocalFileSystem:
    """
    Local filesystem backend.

    Relative paths are resolved against root, absolute paths are used as is.
    """

    def __init__(self, root: str = None):
        self.root = os.path.abspath(root or os.curdir)

    def _resolve(self, path: str) -> str:
        return os.path.join(self.root, os.fspath(path))

    def open(self, path: str) -> BinaryIO:
        """
        Open file for reading.

        Raises:
            FileNotFoundError, PermissionError, IsADirectoryError: Propagated from open()
        """
        fullPath = self._resolve(path)
        handle = open(fullPath, "rb")
        logger.debug(f"Opened {fullPath}")
        return handle
