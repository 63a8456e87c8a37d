"""Domain models and entities.

Pure, validated data structures (Pydantic v2). The domain knows nothing
about subprocesses, files or the CLI.
"""
