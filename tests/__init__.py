"""
Tests for Tensor Canvas
=======================

Run all tests:
    pytest tests/

Skip slow tests:
    pytest tests/ -m "not slow"
"""
