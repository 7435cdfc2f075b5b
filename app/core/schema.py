"""
Database DDL in dependency order.

Run `python -m app.core.schema > schema.sql` and paste the output into the
Supabase SQL editor to set up a fresh project.
"""

from app.chat import models as chat_models
from app.feedback import models as feedback_models
from app.locals import models as locals_models

SCHEMA = [
    ("profiles", locals_models.profiles_sql),
    ("locals", locals_models.locals_sql),
    ("tags", locals_models.tags_sql),
    ("searches", locals_models.searches_sql),
    ("chats", chat_models.chats_sql),
    ("chat_participants", chat_models.chat_participants_sql),
    ("messages", chat_models.messages_sql),
    ("create_chat_with_participants", chat_models.create_chat_with_participants_sql),
    ("feedback", feedback_models.feedback_sql),
]


def schema_sql() -> str:
    return "\n".join(f"-- {name}\n{sql.strip()}\n" for name, sql in SCHEMA)


if __name__ == "__main__":
    print(schema_sql())
