"""Infrastructure layer for SessionHub.

This package contains implementations of external dependencies:
the Firestore repositories, the meeting provider clients, local recording
storage and the container repair pipeline.
"""
