"""Small helpers shared by the AI modules."""
