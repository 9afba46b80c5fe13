"""Pure domain rules for the conquest engine: no I/O, no sessions."""
