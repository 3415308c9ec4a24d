"""
Accounts core unit tests
"""

import unittest
from .test_api import APITests
from .test_caching import (
    CachePolicyTests, CachingEngineTests, ConditionalEvaluatorTests,
    FingerprintTests, HeaderParserTests, PreconditionValidatorTests
)
from .test_misc import LoggerTests, PersistenceTests, SettingsTests, StandaloneCLITests


TEST_CLASSES = [
    APITests,
    CachePolicyTests,
    CachingEngineTests,
    ConditionalEvaluatorTests,
    FingerprintTests,
    HeaderParserTests,
    LoggerTests,
    PersistenceTests,
    PreconditionValidatorTests,
    SettingsTests,
    StandaloneCLITests,
]


def get_suite() -> unittest.TestSuite:
    suite = unittest.TestSuite()
    for cls in TEST_CLASSES:
        for fixture in filter(lambda f: f.startswith("test_"), dir(cls)):
            suite.addTest(cls(fixture))
    return suite
