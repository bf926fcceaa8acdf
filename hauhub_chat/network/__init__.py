"""Wire protocol - frame types and JSON codec."""
