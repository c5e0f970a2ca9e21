"""Transformation pipeline.

This module runs builder steps against materialized datasets, captures
their outputs into the content store, and extends provenance chains.
"""
