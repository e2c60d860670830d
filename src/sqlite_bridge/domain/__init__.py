"""Domain layer - pure types with no native dependency."""
