"""
Test suite for vlt issuance core

Contains:
- tests/unit/          : Unit tests for individual modules and controllers
"""
