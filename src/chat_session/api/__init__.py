"""Reference chat service speaking the send and history contracts."""
