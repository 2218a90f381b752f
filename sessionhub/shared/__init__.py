"""Shared utilities and components for SessionHub API.

This package contains middleware, response models, constants
and other components shared across the application.
"""
