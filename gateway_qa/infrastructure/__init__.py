"""Infrastructure layer - settings, logging, merchants, gateway client, state."""
