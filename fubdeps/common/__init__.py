"""
Common helpers shared by the dependency engine:
- Logging setup
- Formatting and environment utilities
"""
