"""Static frontend serving."""
