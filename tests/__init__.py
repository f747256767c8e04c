"""
Test suite for photofolio.

This module contains all test cases for the application:
- Unit tests for services and models
- Integration tests for the gallery lifecycle
"""
