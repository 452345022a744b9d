"""Route modules: health, article listing and session data submission."""
