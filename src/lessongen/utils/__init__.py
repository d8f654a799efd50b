"""
Shared utilities for the lesson generation pipeline.

- llm_client.py: Completion client interface and Instructor-backed adapter
- template.py: {{placeholder}} rendering for prompt templates
- debug_recorder.py: Per-run debug sessions written as plain-text reports
- file_io.py: JSON/text file helpers
- logging_config.py: Structured JSON logging and stage timing
"""

__all__ = [
    "llm_client",
    "template",
    "debug_recorder",
    "file_io",
    "logging_config",
]
