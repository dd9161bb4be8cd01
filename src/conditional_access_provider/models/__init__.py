"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- Microsoft Graph Conditional Access wire representations
- Declarative resource specifications (desired state)
- Lifecycle results and diagnostics
"""
