"""Dataset materialization and registration.

This module realizes manifests as trees of references into the
content store and registers external file collections.
"""
