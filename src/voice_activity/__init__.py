"""Voice presence tracking and activity reporting for guild voice channels."""
