"""Content-addressed storage and manifest handling.

This module stores blobs by hash in a sharded layout and reads,
validates, and queries dataset manifests for the SDK.
"""
