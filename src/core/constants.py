"""Core constants used across Cast modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

SCHEMA_VERSION = "1.0"
STORE_DIR_NAME = "store"
DATASETS_DIR_NAME = "datasets"
DATA_DIR_NAME = "data"
MANIFEST_FILE_NAME = "manifest.json"
DATASET_INFO_FILE_NAME = "dataset-info.json"
OUTPUT_DIR_NAME = "output"
SOURCE_VIEW_DIR_NAME = "source"
HASH_ALGORITHM = "sha256"
HASH_HEX_LENGTH = 64
HASH_CHUNK_SIZE = 1024 * 1024
SHARD_PREFIX_LENGTH = 2
STORED_BLOB_MODE = 0o444
SOURCE_VIEW_DIR_MODE = 0o555
WRITABLE_DIR_MODE = 0o755
UNKNOWN_SOURCE_HASH = f"{HASH_ALGORITHM}:unknown"
TRANSFORMED_ARCHIVE_HASH = f"{HASH_ALGORITHM}:transformed"
TRANSFORMED_URL_SCHEME = "transformed://"
DEFAULT_TRANSFORMED_VERSION = "transformed"
UNKNOWN_SERVER_MTIME = "unknown"
UNKNOWN_TOOL_VERSION = "unknown"
OUTPUT_DIGEST_LENGTH = 16
STORE_ENV_VAR = "CAST_STORE"
WORK_ROOT_ENV_VAR = "CAST_WORK_ROOT"
CONFIG_FILE_ENV_VAR = "CAST_CONFIG_FILE"
DEFAULT_CONFIG_FILE = Path("~/.config/cast/config.yaml")
DATASET_ENV_PREFIX = "CAST_DATASET_"
BUILDER_SOURCE_ENV_VAR = "CAST_SOURCE_DATA"
BUILDER_OUTPUT_ENV_VAR = "CAST_OUTPUT"
BUILDER_NAME_ENV_VAR = "CAST_TRANSFORM_NAME"
BUILDER_PARAMS_ENV_VAR = "CAST_TRANSFORM_PARAMS"
BUILDER_STDERR_TAIL_CHARS = 2000
FASTA_EXTENSIONS = (".fasta", ".fa", ".faa")
BLAST_FASTA_EXTENSIONS = (".fasta", ".fa", ".faa", ".fna")
ARCHIVE_EXTENSIONS = (".tar.gz", ".tgz", ".tar.bz2", ".tar.xz", ".zip")
BLAST_DB_TYPES = ("prot", "nucl")
