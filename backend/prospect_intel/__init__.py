"""
Prospect Intel backend.

Ingests raw prospect data, resolves it against the user's contact graph and
enriches every resolved prospect with AI-generated intelligence.
"""

__version__ = "10.0.0"
