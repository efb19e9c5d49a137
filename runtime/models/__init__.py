"""
Pydantic datamodels used by the content record runtime.

- api_models: HTTP request/response schemas

The persisted documents (Index, Page, Entry) live in core/log/models.py.
"""
