"""AI providers used by Switchboard."""
