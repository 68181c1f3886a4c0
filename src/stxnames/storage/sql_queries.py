"""
sql_queries.py
--------------

All SQL used by the DuckDB ledger store.

Tables
    usernames  active ownership, one row per username
    transfers  append-only transfer history
    releases   append-only release history
    processed_transactions  tx ids already applied (durable dedup)

History tables reference usernames by plain text (no foreign key), so
history outlives the active row unless the store is configured to cascade.
"""

# =====================================================================
# SCHEMA
# =====================================================================

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS usernames (
        username       VARCHAR PRIMARY KEY,
        owner          VARCHAR NOT NULL,
        registered_at  BIGINT  NOT NULL,
        tx_id          VARCHAR NOT NULL,
        block_height   BIGINT  NOT NULL,
        created_at     TIMESTAMP DEFAULT current_timestamp,
        updated_at     TIMESTAMP DEFAULT current_timestamp
    )
    """,
    "CREATE SEQUENCE IF NOT EXISTS transfers_id_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS transfers (
        id              BIGINT  PRIMARY KEY DEFAULT nextval('transfers_id_seq'),
        username        VARCHAR NOT NULL,
        from_owner      VARCHAR NOT NULL,
        to_owner        VARCHAR NOT NULL,
        tx_id           VARCHAR NOT NULL,
        block_height    BIGINT  NOT NULL,
        event_timestamp BIGINT  NOT NULL,
        created_at      TIMESTAMP DEFAULT current_timestamp
    )
    """,
    "CREATE SEQUENCE IF NOT EXISTS releases_id_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS releases (
        id              BIGINT  PRIMARY KEY DEFAULT nextval('releases_id_seq'),
        username        VARCHAR NOT NULL,
        previous_owner  VARCHAR NOT NULL,
        tx_id           VARCHAR NOT NULL,
        block_height    BIGINT  NOT NULL,
        event_timestamp BIGINT  NOT NULL,
        created_at      TIMESTAMP DEFAULT current_timestamp
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS processed_transactions (
        tx_id          VARCHAR PRIMARY KEY,
        processed_at   TIMESTAMP DEFAULT current_timestamp
    )
    """,
    # usernames.owner is rewritten on every transfer; DuckDB turns updates of
    # ART-indexed columns into delete+insert, so owner lookups use zone maps.
    "CREATE INDEX IF NOT EXISTS idx_transfers_username ON transfers(username)",
    "CREATE INDEX IF NOT EXISTS idx_transfers_from_owner ON transfers(from_owner)",
    "CREATE INDEX IF NOT EXISTS idx_transfers_to_owner ON transfers(to_owner)",
    "CREATE INDEX IF NOT EXISTS idx_releases_username ON releases(username)",
    "CREATE INDEX IF NOT EXISTS idx_releases_previous_owner ON releases(previous_owner)",
]


# =====================================================================
# USERNAMES
# =====================================================================

USERNAME_COLUMNS = "username, owner, registered_at, tx_id, block_height"

UPSERT_USERNAME = f"""
INSERT INTO usernames ({USERNAME_COLUMNS})
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (username) DO UPDATE SET
    owner = excluded.owner,
    registered_at = excluded.registered_at,
    tx_id = excluded.tx_id,
    block_height = excluded.block_height,
    updated_at = now()
"""

GET_USERNAME = f"SELECT {USERNAME_COLUMNS} FROM usernames WHERE username = ?"

GET_USERNAME_BY_OWNER = f"""
SELECT {USERNAME_COLUMNS} FROM usernames
WHERE owner = ?
ORDER BY registered_at DESC
LIMIT 1
"""

LIST_USERNAMES = f"""
SELECT {USERNAME_COLUMNS} FROM usernames
ORDER BY registered_at DESC, username
LIMIT ? OFFSET ?
"""

COUNT_USERNAMES = "SELECT COUNT(*) FROM usernames"

UPDATE_OWNER = f"""
UPDATE usernames SET
    owner = ?,
    tx_id = COALESCE(?, tx_id),
    block_height = COALESCE(?, block_height),
    updated_at = now()
WHERE username = ?
RETURNING {USERNAME_COLUMNS}
"""

DELETE_USERNAME = f"DELETE FROM usernames WHERE username = ? RETURNING {USERNAME_COLUMNS}"


# =====================================================================
# HISTORY
# =====================================================================

INSERT_TRANSFER = """
INSERT INTO transfers (username, from_owner, to_owner, tx_id, block_height, event_timestamp)
VALUES (?, ?, ?, ?, ?, ?)
"""

INSERT_RELEASE = """
INSERT INTO releases (username, previous_owner, tx_id, block_height, event_timestamp)
VALUES (?, ?, ?, ?, ?)
"""

LIST_TRANSFERS = """
SELECT username, from_owner, to_owner, tx_id, block_height, event_timestamp
FROM transfers
WHERE username = ?
ORDER BY block_height, id
"""

LIST_RELEASES = """
SELECT username, previous_owner, tx_id, block_height, event_timestamp
FROM releases
WHERE username = ?
ORDER BY block_height, id
"""

DELETE_TRANSFERS_FOR = "DELETE FROM transfers WHERE username = ?"

DELETE_RELEASES_FOR = "DELETE FROM releases WHERE username = ?"


# =====================================================================
# ACTIVITY FEED / DEDUP
# =====================================================================

LIST_RECENT = """
SELECT event_type, username, event_owner, tx_id, block_height, event_timestamp
FROM (
    SELECT 'registration' AS event_type, username, owner AS event_owner,
           tx_id, block_height, registered_at AS event_timestamp
    FROM usernames
    UNION ALL
    SELECT 'transfer' AS event_type, username, to_owner AS event_owner,
           tx_id, block_height, event_timestamp
    FROM transfers
    UNION ALL
    SELECT 'release' AS event_type, username, previous_owner AS event_owner,
           tx_id, block_height, event_timestamp
    FROM releases
) AS events
ORDER BY event_timestamp DESC, block_height DESC
LIMIT ?
"""

MARK_TRANSACTION = "INSERT INTO processed_transactions (tx_id) VALUES (?) ON CONFLICT DO NOTHING"

HAS_TRANSACTION = """
SELECT EXISTS (SELECT 1 FROM processed_transactions WHERE tx_id = ?)
    OR EXISTS (SELECT 1 FROM usernames WHERE tx_id = ?)
    OR EXISTS (SELECT 1 FROM transfers WHERE tx_id = ?)
    OR EXISTS (SELECT 1 FROM releases WHERE tx_id = ?)
"""
