"""
Test Suite for the rental demand forecaster
"""
