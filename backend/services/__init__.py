"""Service layer: article index, session workflow and notifications."""
