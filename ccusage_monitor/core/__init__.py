"""
Core modules for CCUsage Monitor.

This package contains the usage aggregation engine: log discovery,
Claude and Codex log parsing, pricing, and aggregation.
"""
