"""Plain data types shared across the moderation pipeline."""
