"""
sigstudio

Multi-tenant email signature management: organizations, their team,
signature templates and assignments, uploaded assets and an activity log,
served as a JSON REST API.
"""

__version__ = "1.0.0"
