"""Operator command-line tools for DesignVault.

- ``python -m designvault.cli init-db`` creates the database schema.
- ``python -m designvault.cli retry --all`` (or ``--asset-id ID ...``)
  resets failed classifications and waits for them to be re-classified.
"""
