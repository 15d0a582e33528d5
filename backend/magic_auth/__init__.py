"""Magic link authentication service."""
