"""
Storage Package.

Data access layer shared by the analytics repositories.

Modules:
- repositories/: repository base class and exceptions
"""
