"""SpecGen - FastAPI REST API layer.

Modules
-------
main
    FastAPI application factory, route handlers, and the ``main()`` CLI
    entry point.
models
    Pydantic request models and JSON serialisers for content records.
"""
