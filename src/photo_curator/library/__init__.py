"""Photo library storage: photos, faces and people tables."""
