"""Core domain package for afscope.

Core contains log buffering, record parsing and the verification algorithms
without any adb, HTTP or UI-specific code, keeping the logic testable.
"""
