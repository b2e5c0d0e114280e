"""Decode layer.

This module talks to the external decode service that turns stored
binary values into readable documents.
"""
