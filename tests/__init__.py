"""Stewart test suite.

Layout mirrors the package: test_core/, test_io/, test_checks/, test_shell/,
test_probes/, test_dispatch/, test_bank/, test_audit/, test_ui/ and
test_integration/. Shared fixtures live in conftest.py, in-memory stand-ins
for the registry and shell workers in fakes.py.

Running Tests:
    python -m pytest tests/ -v
    python -m pytest tests/ -m "not posix_shell"   # skip real-shell tests
"""
