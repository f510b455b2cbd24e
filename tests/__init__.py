"""
Meadow Engine Test Suite
========================

Test Organization
-----------------
- tests/unit/          : Engine behaviour against a throwaway SQLite file
- tests/integration/   : The same engine against PostgreSQL via testcontainers

Testing Philosophy
------------------
- Time is driven by a virtual clock; nothing sleeps waiting for a deadline
- Races are exercised with asyncio.gather against the real store
- Use pytest markers to select suites (`-m unit`, `-m integration`)
"""
