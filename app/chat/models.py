chats_sql = """
CREATE TYPE chat_status AS ENUM ('active', 'archived');

CREATE TABLE chats (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    traveler_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    local_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    city TEXT NOT NULL,
    status chat_status NOT NULL DEFAULT 'active',
    last_message_at TIMESTAMPTZ DEFAULT now(),
    created_at TIMESTAMPTZ DEFAULT now(),
    updated_at TIMESTAMPTZ DEFAULT now(),

    CONSTRAINT prevent_self_chat CHECK (traveler_id <> local_id)
);

-- At most one active chat per unordered (traveler, local) pair
CREATE UNIQUE INDEX unique_active_chat_pair ON chats (
    LEAST(traveler_id, local_id),
    GREATEST(traveler_id, local_id)
) WHERE status = 'active';
"""

chat_participants_sql = """
CREATE TYPE participant_role AS ENUM ('traveler', 'local');

CREATE TABLE chat_participants (
    chat_id UUID REFERENCES chats(id) ON DELETE CASCADE,
    user_id UUID REFERENCES profiles(id) ON DELETE CASCADE,
    role participant_role NOT NULL,
    joined_at TIMESTAMPTZ DEFAULT now(),
    last_read_at TIMESTAMPTZ,
    PRIMARY KEY (chat_id, user_id)
);
"""

messages_sql = """
CREATE TYPE message_type AS ENUM ('text', 'image', 'location');

CREATE TABLE messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    chat_id UUID NOT NULL REFERENCES chats(id) ON DELETE CASCADE,
    sender_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    content TEXT NOT NULL CHECK (char_length(content) <= 1000),
    message_type message_type NOT NULL DEFAULT 'text',
    is_read BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT now()
);

CREATE INDEX messages_chat_created_idx ON messages (chat_id, created_at);

-- Realtime change feed for the chat thread subscription
ALTER PUBLICATION supabase_realtime ADD TABLE messages;
"""

# Chat row and both participants in one transaction. A concurrent first
# contact from the other side hits unique_active_chat_pair and gets the
# existing chat back instead of a duplicate.
create_chat_with_participants_sql = """
CREATE OR REPLACE FUNCTION create_chat_with_participants(
    p_traveler_id UUID,
    p_local_id UUID,
    p_city TEXT
) RETURNS SETOF chats
LANGUAGE plpgsql
AS $$
DECLARE
    new_chat chats;
BEGIN
    BEGIN
        INSERT INTO chats (traveler_id, local_id, city, status, last_message_at)
        VALUES (p_traveler_id, p_local_id, p_city, 'active', now())
        RETURNING * INTO new_chat;
    EXCEPTION WHEN unique_violation THEN
        RETURN QUERY
            SELECT * FROM chats
            WHERE status = 'active'
              AND LEAST(traveler_id, local_id) = LEAST(p_traveler_id, p_local_id)
              AND GREATEST(traveler_id, local_id) = GREATEST(p_traveler_id, p_local_id)
            LIMIT 1;
        RETURN;
    END;

    INSERT INTO chat_participants (chat_id, user_id, role)
    VALUES
        (new_chat.id, p_traveler_id, 'traveler'),
        (new_chat.id, p_local_id, 'local');

    RETURN NEXT new_chat;
END;
$$;
"""
