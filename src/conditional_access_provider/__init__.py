"""
Conditional Access Provider - declarative Microsoft Graph Conditional Access resources.

This package manages Entra ID Conditional Access objects with:
- Authentication strength policies
- Named locations (IP range and country based)
- Conditional access policies
- Eventual-consistency aware create/update/delete lifecycles
"""

__version__ = "0.1.0"
