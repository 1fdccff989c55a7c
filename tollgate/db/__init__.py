"""Database engine, sessions and transaction running."""
