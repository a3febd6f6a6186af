"""
Framework integrations.

- ``dependency_injector``: IoC container wiring the gate services
- ``fastapi``: middleware, dependencies and challenge router
- ``django``: middleware, views and decorators
"""
