"""HTTP framework adapters exposing the archive intake."""
