feedback_sql = """
CREATE TABLE feedback (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    comment TEXT NOT NULL CHECK (char_length(comment) <= 2000),
    created_at TIMESTAMPTZ DEFAULT now()
);
"""
