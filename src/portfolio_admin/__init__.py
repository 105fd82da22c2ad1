"""Portfolio Admin: session, rate-limit and CSRF hardening for a single-admin CMS."""

__version__ = "0.1.0"
