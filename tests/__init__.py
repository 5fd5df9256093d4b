"""
Tests package for Hand-Eye Calibration Toolkit

This package contains all test modules for the calibration toolkit,
organized by test type:

- unit/: Unit tests for individual modules and classes
- integration/: Controller and web API workflows with synthetic robot data
"""
