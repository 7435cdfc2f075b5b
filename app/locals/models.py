profiles_sql = """
CREATE TABLE profiles (
    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    email TEXT UNIQUE,
    full_name TEXT NOT NULL,
    bio TEXT,
    avatar_url TEXT,           -- object in the `avatars` bucket: {user_id}/{filename}
    city TEXT,
    country TEXT,
    tags TEXT[] DEFAULT '{}',
    is_local BOOLEAN NOT NULL DEFAULT FALSE,
    is_traveler BOOLEAN NOT NULL DEFAULT TRUE,
    last_active_at TIMESTAMPTZ DEFAULT now(),
    created_at TIMESTAMPTZ DEFAULT now(),
    updated_at TIMESTAMPTZ DEFAULT now()
);
"""

locals_sql = """
CREATE TABLE locals (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL UNIQUE REFERENCES profiles(id) ON DELETE CASCADE,
    city TEXT NOT NULL,
    country TEXT NOT NULL,
    bio TEXT NOT NULL CHECK (char_length(bio) BETWEEN 50 AND 1000),
    tags TEXT[] NOT NULL DEFAULT '{}',
    languages TEXT[] NOT NULL DEFAULT '{English}',
    is_verified BOOLEAN NOT NULL DEFAULT FALSE,
    -- maintained outside this service
    rating NUMERIC(2, 1) NOT NULL DEFAULT 0,
    total_connections INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ DEFAULT now(),
    updated_at TIMESTAMPTZ DEFAULT now()
);

CREATE INDEX locals_tags_idx ON locals USING GIN (tags);
"""

tags_sql = """
CREATE TABLE tags (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    category TEXT
);

CREATE TABLE local_tags (
    local_id UUID REFERENCES locals(id) ON DELETE CASCADE,
    tag_id INTEGER REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (local_id, tag_id)
);
"""

searches_sql = """
CREATE TABLE searches (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
    query TEXT,
    location TEXT,
    city TEXT,
    country TEXT,
    dates TEXT,
    tags TEXT[],
    results_count INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ DEFAULT now()
);
"""
