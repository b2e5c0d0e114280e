"""Snapshot layer.

This module reads the etcd keyspace at one pinned revision and maps
each key to its place in the output tree.
"""
