"""Constants used throughout branchkv."""

# Repository layout (bare: everything lives directly under the repository path)
OBJECTS_DIR = "objects"
COMMITS_DIR = "commits"
METADATA_DB = "metadata.db"

# Branches
DEFAULT_BRANCH = "master"

# Characters that may not appear in a key or branch name
KEY_SEPARATORS = ("/", "\\", "\0")
RESERVED_NAMES = (".", "..")

# File size limits (bytes)
GZIP_THRESHOLD = 200 * 1024 * 1024   # 200 MB

# Hash algorithm
HASH_ALGORITHM = "sha256"
HASH_LENGTH = 64  # SHA-256 produces 64 hex characters
SHORT_HASH_LENGTH = 7

# Environment variables
AUTHOR_ENV = "BRANCHKV_AUTHOR"
REPO_ENV = "BRANCHKV_REPO"

# Exit codes
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2

# Database schema version
DB_SCHEMA_VERSION = 1
