"""HTTP surface of FileGate."""
