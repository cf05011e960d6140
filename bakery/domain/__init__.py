"""Plain domain objects that live outside the database (carts, identities)."""
