"""
Outliner Application Package.

- backend/: Node tree engine, API, database, configuration
"""
