"""HTTP surface for the calendar feed, global-ID sync, and ticket creation."""
