"""SQLite schema definitions for SubCircle."""

# SQL schema definitions
SCHEMA_VERSION = 1

CREATE_TABLES = [
    # Users table - the identity provider owns login, we only keep a stable id
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id TEXT PRIMARY KEY,
        email TEXT UNIQUE,
        display_name TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # Streaming service catalog
    """
    CREATE TABLE IF NOT EXISTS streaming_services (
        service_id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        category TEXT,
        monthly_price TEXT,
        website_url TEXT,
        logo_url TEXT,
        description TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # User subscriptions, with the per-subscription share flags
    """
    CREATE TABLE IF NOT EXISTS user_subscriptions (
        subscription_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        service_id TEXT NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        shared_with_partners BOOLEAN NOT NULL DEFAULT FALSE,
        share_credentials BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE,
        FOREIGN KEY (service_id) REFERENCES streaming_services(service_id),
        CHECK (share_credentials = 0 OR shared_with_partners = 1)
    )
    """,
    # Partner connections - one row per pair, either direction
    """
    CREATE TABLE IF NOT EXISTS partner_connections (
        connection_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        partner_id TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending', -- 'pending', 'accepted', 'rejected'
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE,
        FOREIGN KEY (partner_id) REFERENCES users(user_id) ON DELETE CASCADE,
        UNIQUE(user_id, partner_id)
    )
    """,
    # Encrypted credentials, at most one row per subscription
    """
    CREATE TABLE IF NOT EXISTS subscription_credentials (
        id TEXT PRIMARY KEY,
        subscription_id TEXT UNIQUE NOT NULL,
        owner_user_id TEXT NOT NULL,
        encrypted_username TEXT NOT NULL,
        encrypted_password TEXT NOT NULL,
        encrypted_notes TEXT,
        encryption_key_hint TEXT,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL,
        FOREIGN KEY (subscription_id) REFERENCES user_subscriptions(subscription_id) ON DELETE CASCADE
    )
    """,
    # Notifications table
    """
    CREATE TABLE IF NOT EXISTS notifications (
        notification_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        data TEXT,
        read BOOLEAN NOT NULL DEFAULT FALSE,
        priority TEXT DEFAULT 'low',
        category TEXT DEFAULT 'partner',
        action_url TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
    )
    """,
    # Schema version table
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

# Index definitions for optimization
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_user_id ON user_subscriptions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_partner_connections_partner_id ON partner_connections(partner_id)",
    "CREATE INDEX IF NOT EXISTS idx_credentials_owner ON subscription_credentials(owner_user_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user_id ON notifications(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_read ON notifications(user_id, read)",
]

# Triggers for automatic timestamp updates
CREATE_TRIGGERS = [
    """
    CREATE TRIGGER IF NOT EXISTS update_subscriptions_timestamp
    AFTER UPDATE OF is_active, shared_with_partners, share_credentials ON user_subscriptions
    FOR EACH ROW
    BEGIN
        UPDATE user_subscriptions SET updated_at = CURRENT_TIMESTAMP
        WHERE subscription_id = NEW.subscription_id;
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS update_partner_connections_timestamp
    AFTER UPDATE OF status ON partner_connections
    FOR EACH ROW
    BEGIN
        UPDATE partner_connections SET updated_at = CURRENT_TIMESTAMP
        WHERE connection_id = NEW.connection_id;
    END
    """,
]


def get_init_schema():
    """
    Get complete schema initialization SQL

    Returns:
        List of SQL statements to execute
    """
    statements = []
    statements.extend(CREATE_TABLES)
    statements.extend(CREATE_INDEXES)
    statements.extend(CREATE_TRIGGERS)
    statements.append(
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})"
    )
    return statements


def get_drop_schema():
    """
    Get SQL statements to drop all tables for testing

    Returns:
        List of DROP TABLE statements
    """
    return [
        "DROP TABLE IF EXISTS notifications",
        "DROP TABLE IF EXISTS subscription_credentials",
        "DROP TABLE IF EXISTS partner_connections",
        "DROP TABLE IF EXISTS user_subscriptions",
        "DROP TABLE IF EXISTS streaming_services",
        "DROP TABLE IF EXISTS users",
        "DROP TABLE IF EXISTS schema_version",
    ]
