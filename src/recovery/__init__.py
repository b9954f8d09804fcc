"""Recovery Partners API: accountability matching, shared challenges and live notifications."""
