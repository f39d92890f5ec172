"""
Defines the database schema for studycore using a SQL string constant.
This keeps the schema definition separate from the database connection and
operation logic.

Timestamps are stored as naive UTC; db_utils re-attaches the UTC zone on
the way out.
"""

DB_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS decks (
        uuid UUID PRIMARY KEY,
        user_id UUID NOT NULL,
        name VARCHAR NOT NULL,
        slug VARCHAR NOT NULL,
        language_code VARCHAR,
        is_archived BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL,
        UNIQUE (user_id, slug)
    );

    CREATE TABLE IF NOT EXISTS cards (
        uuid UUID PRIMARY KEY,
        user_id UUID NOT NULL,
        deck_uuid UUID NOT NULL,
        front VARCHAR NOT NULL CHECK (length(front) BETWEEN 1 AND 2000),
        back VARCHAR NOT NULL CHECK (length(back) BETWEEN 1 AND 2000),
        source VARCHAR NOT NULL DEFAULT 'manual' CHECK (source IN ('manual', 'ai')),
        is_archived BOOLEAN NOT NULL DEFAULT FALSE,
        language_code VARCHAR,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL,
        due_at TIMESTAMP,
        last_reviewed_at TIMESTAMP,
        repetitions_count INTEGER NOT NULL DEFAULT 0 CHECK (repetitions_count >= 0),
        lapses_count INTEGER NOT NULL DEFAULT 0 CHECK (lapses_count >= 0),
        ease_factor DECIMAL(4, 2) NOT NULL DEFAULT 2.50 CHECK (ease_factor > 0),
        interval_days INTEGER NOT NULL DEFAULT 0 CHECK (interval_days >= 0)
    );

    CREATE TABLE IF NOT EXISTS reviews (
        review_uuid UUID PRIMARY KEY,
        user_id UUID NOT NULL,
        card_uuid UUID NOT NULL,
        reviewed_at TIMESTAMP NOT NULL,
        rating SMALLINT NOT NULL CHECK (rating BETWEEN 0 AND 3),
        duration_ms INTEGER CHECK (duration_ms IS NULL OR duration_ms >= 0),
        pre_ease_factor DECIMAL(4, 2),
        post_ease_factor DECIMAL(4, 2),
        pre_interval_days INTEGER,
        post_interval_days INTEGER,
        pre_repetitions_count INTEGER,
        post_repetitions_count INTEGER,
        pre_lapses_count INTEGER,
        post_lapses_count INTEGER,
        pre_due_at TIMESTAMP,
        post_due_at TIMESTAMP,
        pre_last_reviewed_at TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_decks_user_id ON decks (user_id);
    CREATE INDEX IF NOT EXISTS idx_cards_user_id ON cards (user_id);
    CREATE INDEX IF NOT EXISTS idx_cards_deck_uuid ON cards (deck_uuid);
    CREATE INDEX IF NOT EXISTS idx_reviews_card_uuid ON reviews (card_uuid);
    CREATE INDEX IF NOT EXISTS idx_reviews_user_id ON reviews (user_id);
"""
