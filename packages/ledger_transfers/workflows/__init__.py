"""High-level workflows composing the matcher, linker and ledger store."""
