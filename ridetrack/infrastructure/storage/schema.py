"""SQLite schema for the key-value blob store."""

BLOB_SCHEMA = """
-- ============================================
-- RideTrack Blob Store Schema
-- Version: 1.0.0
-- ============================================

-- One JSON document per key
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""
