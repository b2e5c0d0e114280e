"""Dump orchestration layer.

This module drives the scan, decode and write pipeline and persists
decoded documents and run summaries to local disk.
"""
