"""College application tracker backend.

This package exposes the service, repository and model modules used by
the FastAPI application. The status state machine lives in
`status_machine` and the student/parent access rule in `access`;
individual modules contain the concrete implementations and
documentation.
"""
