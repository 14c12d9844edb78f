"""CLI tools for ingestflow.

- ``python -m src.cli.ingest`` -- ingest files, notes and directories,
  list and delete documents.
"""
