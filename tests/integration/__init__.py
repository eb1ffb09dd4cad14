"""Integration tests for the voting system.

This package runs the election service against a real PostgreSQL:

- Schema creation and default seeding
- Dense candidate positions under the deferred unique constraint
- One vote per voter name, enforced by the unique index
- Concurrent vote submissions through the connection pool

All tests require the docker-compose PostgreSQL to be running.
"""

__version__ = "1.0.0"
