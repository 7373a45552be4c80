"""
API end-to-end tests for the daily challenge server.

This package contains tests that drive the API and task routes through the
Flask test client, against a clean database and a fake push notifier, and
verify the results in the database.
"""
