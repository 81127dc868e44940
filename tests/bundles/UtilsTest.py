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

import os
import unittest
from unittest.mock import patch

from bundles.Utils import formatSize, getEnv, toText, ONE_KB, ONE_MB, ONE_GB, ONE_TB


class FormatSizeTest(unittest.TestCase):
    """Sizes as they appear in reader log lines"""

    def testUnits(self):
        testCases = [
            (0, 'Byte'),
            (1, 'Byte'),
            (512, 'Bytes'),
            (ONE_KB * 3, 'K'),
            (ONE_MB * 2, 'M'),
            (ONE_GB * 1.5, 'G'),
            (ONE_TB * 2.5, 'T'),
        ]

        for size, unit in testCases:
            with self.subTest(size=size):
                result = formatSize(size)
                print(f"formatSize({size}) = '{result}'")
                self.assertIn(unit, result)

    def testDecimalsGrowWithSize(self):
        self.assertNotIn('.', formatSize(ONE_MB * 500))
        self.assertEqual(formatSize(ONE_GB * 5).count('.'), 1)
        self.assertRegex(formatSize(ONE_TB * 2), r'\.\d\dT$')

    def testExplicitDecimal(self):
        self.assertRegex(formatSize(ONE_GB * 1.234, decimal=2), r'^1\.\d\dG$')

    def testPlural(self):
        self.assertNotIn('Bytes', formatSize(1, plural=False))
        self.assertIn('Bytes', formatSize(2, plural=True))

    def testSmallSizesAreSpelledOut(self):
        """Sizes below 1 KiB keep their Byte suffix, zero included"""
        self.assertEqual(formatSize(0), '0 Bytes')
        self.assertEqual(formatSize(1), '1 Byte')
        self.assertEqual(formatSize(2), '2 Bytes')
        self.assertEqual(formatSize(512), '512 Bytes')
        self.assertEqual(formatSize(ONE_KB - 1), '1023 Bytes')
        self.assertEqual(formatSize(ONE_KB * 3), '3K')


class GetEnvTest(unittest.TestCase):

    def testTypedValues(self):
        with patch.dict(os.environ, {'BUNDLE_TEST_INT': '12', 'BUNDLE_TEST_BOOL': 'True', 'BUNDLE_TEST_FLOAT': '0.5'}):
            self.assertEqual(getEnv('BUNDLE_TEST_INT', 1), 12)
            self.assertIs(getEnv('BUNDLE_TEST_BOOL', False), True)
            self.assertEqual(getEnv('BUNDLE_TEST_FLOAT', 1.0), 0.5)
            self.assertEqual(getEnv('BUNDLE_TEST_INT', None), '12')

    def testMissingOrInvalid(self):
        with patch.dict(os.environ, {'BUNDLE_TEST_INT': 'twelve'}):
            os.environ.pop('BUNDLE_TEST_MISSING', None)

            self.assertEqual(getEnv('BUNDLE_TEST_INT', 64), 64)
            self.assertEqual(getEnv('BUNDLE_TEST_MISSING', 'default'), 'default')


class ToTextTest(unittest.TestCase):

    def testUtf8(self):
        self.assertEqual(toText('CAB-é/level0'.encode('utf-8')), 'CAB-é/level0')
        self.assertEqual(toText(bytearray(b'level0')), 'level0')

    def testPassThrough(self):
        self.assertEqual(toText('already text'), 'already text')
        self.assertEqual(toText(12), '12')

    def testPreferredEncodingFirst(self):
        data = 'レベル'.encode('shift_jis')

        self.assertEqual(toText(data, encodings=('shift_jis',)), 'レベル')

    def testUnknownEncodingIsSkipped(self):
        self.assertEqual(toText(b'level0', encodings=('no-such-codec',)), 'level0')

    def testUndecodableFallsBack(self):
        result = toText(b'caf\xe9 \x80 level')

        self.assertIsInstance(result, str)
        self.assertTrue(result.startswith('caf'))


if __name__ == '__main__':
    unittest.main()
