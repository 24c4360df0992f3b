"""Pure domain types: clock, DTOs and balance rules (no I/O)."""
