"""Domain services for the club application review workflow."""
