"""Cross-cutting runtime services: logging and the notification bus."""
