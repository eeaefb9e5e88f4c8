"""Service layer for taakbeheer."""
