# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for the pytest plugin.

This package contains tests that run nested pytest sessions against the
installed plugin.
"""
