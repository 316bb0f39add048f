"""Data Access: SQLAlchemy Core queries against the SchoolHub Supabase schema."""
