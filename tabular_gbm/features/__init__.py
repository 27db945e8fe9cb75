"""
Feature preparation package: category encoding and feature/target splitting.
"""
