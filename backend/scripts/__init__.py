"""
Backend Scripts Module

Maintenance scripts for the provider portal database.

Available scripts:
    - cleanup_expired_links.py: Deletes unused, expired completion links

Usage:
    python -m scripts.cleanup_expired_links
"""
